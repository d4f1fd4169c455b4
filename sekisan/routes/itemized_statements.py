# sekisan/routes/itemized_statements.py
from flask import Blueprint, jsonify, request, send_file

from sekisan.routes.common import (
    expected_version_for_delete,
    operator_id,
    parse_body,
    query_int,
    unit_of_work,
)
from sekisan.schemas.dto.itemized_statement_dto import (
    ItemizedStatementDTO,
    ItemizedStatementSummaryDTO,
)
from sekisan.schemas.requests import RenameRequest, StatementCreateRequest

itemized_statement_bp = Blueprint('itemized_statements', __name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@itemized_statement_bp.route('/projects/<project_id>/itemized-statements', methods=['GET'])
def list_statements(project_id):
    """List live statements; ?latest=1 returns the two most recent plus the total."""
    with unit_of_work() as services:
        services.projects.get_project(project_id)
        if request.args.get('latest') in ('1', 'true'):
            statements, total = services.statements.latest_statements(project_id=project_id)
        else:
            statements, total = services.statements.list_statements(
                project_id=project_id,
                search=request.args.get('search', '').strip() or None,
                page=query_int('page', 1),
                limit=query_int('limit', 20),
                sort_by=request.args.get('sort', 'created_at'),
                order=request.args.get('order', 'desc'),
            )
        return jsonify({
            "items": [ItemizedStatementSummaryDTO.from_orm_model(s).model_dump(mode="json") for s in statements],
            "total": total,
        })


@itemized_statement_bp.route('/projects/<project_id>/itemized-statements', methods=['POST'])
def create_statement(project_id):
    body = parse_body(StatementCreateRequest)
    with unit_of_work() as services:
        statement = services.statements.create_statement(
            project_id=project_id,
            quantity_table_id=body.quantity_table_id,
            name=body.name,
            operator_id=operator_id(),
        )
        return jsonify(ItemizedStatementDTO.from_orm_model(statement).model_dump(mode="json")), 201


@itemized_statement_bp.route('/itemized-statements/<statement_id>', methods=['GET'])
def get_statement(statement_id):
    with unit_of_work() as services:
        statement = services.statements.get_statement(statement_id)
        return jsonify(ItemizedStatementDTO.from_orm_model(statement).model_dump(mode="json"))


@itemized_statement_bp.route('/itemized-statements/<statement_id>', methods=['PATCH'])
def rename_statement(statement_id):
    body = parse_body(RenameRequest)
    with unit_of_work() as services:
        statement = services.statements.rename_statement(
            statement_id=statement_id,
            name=body.name,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(ItemizedStatementSummaryDTO.from_orm_model(statement).model_dump(mode="json"))


@itemized_statement_bp.route('/itemized-statements/<statement_id>', methods=['DELETE'])
def delete_statement(statement_id):
    expected_version = expected_version_for_delete()
    with unit_of_work() as services:
        services.statements.delete_statement(
            statement_id=statement_id,
            expected_version=expected_version,
            operator_id=operator_id(),
        )
        return '', 204


@itemized_statement_bp.route('/itemized-statements/<statement_id>/download/excel', methods=['GET'])
def download_excel(statement_id):
    """Download the statement as .xlsx (?sort=1 for category / work type / name order)."""
    with unit_of_work() as services:
        statement = services.statements.get_statement(statement_id)
        output = services.statements.to_excel(statement, sort=request.args.get('sort') in ('1', 'true'))
        filename = f"{statement.name}_内訳書.xlsx"
        return send_file(
            output,
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=filename,
        )
