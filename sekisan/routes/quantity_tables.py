# sekisan/routes/quantity_tables.py
from flask import Blueprint, jsonify, request

from sekisan.routes.common import (
    Services,
    expected_version_for_delete,
    operator_id,
    parse_body,
    query_int,
    unit_of_work,
)
from sekisan.schemas.dto.quantity_table_dto import (
    QuantityGroupDTO,
    QuantityItemDTO,
    QuantityTableDTO,
    QuantityTableSummaryDTO,
)
from sekisan.schemas.dto.validation_report_dto import ValidationReportDTO
from sekisan.schemas.requests import (
    BulkCopyRequest,
    BulkMoveRequest,
    BulkSaveRequest,
    GroupCreateRequest,
    GroupUpdateRequest,
    ItemCreateRequest,
    ItemUpdateRequest,
    MoveRequest,
    QuantityTableCreateRequest,
    RenameRequest,
    VersionedRequest,
)

quantity_table_bp = Blueprint('quantity_tables', __name__)


def _table_version(services: Services, table_id: str) -> int:
    return services.tables.get_table(table_id).version


def _item_response(services: Services, table_id: str, item, report=None) -> dict:
    payload = {
        "item": QuantityItemDTO.from_orm_model(item).model_dump(mode="json"),
        "table_version": _table_version(services, table_id),
    }
    if report is not None:
        payload["validation"] = ValidationReportDTO.from_domain_model(report).model_dump(mode="json")
    return payload


# =========
# Tables
# =========
@quantity_table_bp.route('/projects/<project_id>/quantity-tables', methods=['GET'])
def list_tables(project_id):
    with unit_of_work() as services:
        services.projects.get_project(project_id)
        tables, total = services.tables.list_tables(
            project_id=project_id,
            search=request.args.get('search', '').strip() or None,
            page=query_int('page', 1),
            limit=query_int('limit', 20),
        )
        return jsonify({
            "items": [QuantityTableSummaryDTO.from_orm_model(t).model_dump(mode="json") for t in tables],
            "total": total,
        })


@quantity_table_bp.route('/projects/<project_id>/quantity-tables', methods=['POST'])
def create_table(project_id):
    body = parse_body(QuantityTableCreateRequest)
    with unit_of_work() as services:
        table = services.tables.create_table(project_id=project_id, name=body.name, operator_id=operator_id())
        return jsonify(QuantityTableDTO.from_orm_model(table).model_dump(mode="json")), 201


@quantity_table_bp.route('/quantity-tables/<table_id>', methods=['GET'])
def get_table(table_id):
    with unit_of_work() as services:
        table = services.tables.get_table(table_id)
        return jsonify(QuantityTableDTO.from_orm_model(table).model_dump(mode="json"))


@quantity_table_bp.route('/quantity-tables/<table_id>', methods=['PATCH'])
def rename_table(table_id):
    body = parse_body(RenameRequest)
    with unit_of_work() as services:
        table = services.tables.rename_table(
            table_id=table_id,
            name=body.name,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(QuantityTableSummaryDTO.from_orm_model(table).model_dump(mode="json"))


@quantity_table_bp.route('/quantity-tables/<table_id>', methods=['DELETE'])
def delete_table(table_id):
    expected_version = expected_version_for_delete()
    with unit_of_work() as services:
        services.tables.delete_table(table_id=table_id, expected_version=expected_version, operator_id=operator_id())
        return '', 204


@quantity_table_bp.route('/quantity-tables/<table_id>/items', methods=['PUT'])
def bulk_save(table_id):
    body = parse_body(BulkSaveRequest)
    with unit_of_work() as services:
        table, reports = services.items.bulk_save(
            table_id=table_id,
            updates=body.items,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        payload = QuantityTableDTO.from_orm_model(table).model_dump(mode="json")
        payload["validation"] = {
            item_id: ValidationReportDTO.from_domain_model(r).model_dump(mode="json")
            for item_id, r in reports.items()
        }
        return jsonify(payload)


# =========
# Groups
# =========
@quantity_table_bp.route('/quantity-tables/<table_id>/groups', methods=['POST'])
def add_group(table_id):
    body = parse_body(GroupCreateRequest)
    with unit_of_work() as services:
        group = services.groups.add_group(
            table_id=table_id,
            name=body.name,
            survey_image_id=body.survey_image_id,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify({
            "group": QuantityGroupDTO.from_orm_model(group).model_dump(mode="json"),
            "table_version": _table_version(services, table_id),
        }), 201


@quantity_table_bp.route('/quantity-tables/<table_id>/groups/<group_id>', methods=['PATCH'])
def update_group(table_id, group_id):
    body = parse_body(GroupUpdateRequest)
    with unit_of_work() as services:
        group = services.groups.update_group(
            table_id=table_id,
            group_id=group_id,
            updates=body.updates(),
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify({
            "group": QuantityGroupDTO.from_orm_model(group).model_dump(mode="json"),
            "table_version": _table_version(services, table_id),
        })


@quantity_table_bp.route('/quantity-tables/<table_id>/groups/<group_id>', methods=['DELETE'])
def remove_group(table_id, group_id):
    expected_version = expected_version_for_delete()
    with unit_of_work() as services:
        services.groups.remove_group(
            table_id=table_id,
            group_id=group_id,
            expected_version=expected_version,
            operator_id=operator_id(),
        )
        return jsonify({"table_version": _table_version(services, table_id)})


@quantity_table_bp.route('/quantity-tables/<table_id>/groups/<group_id>/move', methods=['POST'])
def move_group(table_id, group_id):
    body = parse_body(MoveRequest)
    with unit_of_work() as services:
        services.groups.move_group(
            table_id=table_id,
            group_id=group_id,
            target_index=body.target_index,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        table = services.tables.get_table(table_id)
        return jsonify(QuantityTableDTO.from_orm_model(table).model_dump(mode="json"))


# =========
# Items
# =========
@quantity_table_bp.route('/quantity-tables/<table_id>/groups/<group_id>/items', methods=['POST'])
def add_item(table_id, group_id):
    body = parse_body(ItemCreateRequest)
    with unit_of_work() as services:
        item, report = services.items.add_item(
            table_id=table_id,
            group_id=group_id,
            fields=body.fields,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(_item_response(services, table_id, item, report)), 201


@quantity_table_bp.route('/quantity-tables/<table_id>/items/<item_id>', methods=['PATCH'])
def edit_item(table_id, item_id):
    body = parse_body(ItemUpdateRequest)
    with unit_of_work() as services:
        item, report = services.items.edit_item(
            table_id=table_id,
            item_id=item_id,
            updates=body.updates,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(_item_response(services, table_id, item, report))


@quantity_table_bp.route('/quantity-tables/<table_id>/items/<item_id>', methods=['DELETE'])
def remove_item(table_id, item_id):
    expected_version = expected_version_for_delete()
    with unit_of_work() as services:
        services.items.remove_item(
            table_id=table_id,
            item_id=item_id,
            expected_version=expected_version,
            operator_id=operator_id(),
        )
        return jsonify({"table_version": _table_version(services, table_id)})


@quantity_table_bp.route('/quantity-tables/<table_id>/items/<item_id>/copy', methods=['POST'])
def copy_item(table_id, item_id):
    body = parse_body(VersionedRequest)
    with unit_of_work() as services:
        item = services.items.copy_item(
            table_id=table_id,
            item_id=item_id,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(_item_response(services, table_id, item)), 201


@quantity_table_bp.route('/quantity-tables/<table_id>/items/<item_id>/move', methods=['POST'])
def move_item(table_id, item_id):
    body = parse_body(MoveRequest)
    with unit_of_work() as services:
        item = services.items.move_item(
            table_id=table_id,
            item_id=item_id,
            target_index=body.target_index,
            target_group_id=body.target_group_id,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify(_item_response(services, table_id, item))


@quantity_table_bp.route('/quantity-tables/<table_id>/items/bulk-copy', methods=['POST'])
def bulk_copy(table_id):
    body = parse_body(BulkCopyRequest)
    with unit_of_work() as services:
        copies = services.items.bulk_copy(
            table_id=table_id,
            item_ids=body.item_ids,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify({
            "items": [QuantityItemDTO.from_orm_model(i).model_dump(mode="json") for i in copies],
            "table_version": _table_version(services, table_id),
        }), 201


@quantity_table_bp.route('/quantity-tables/<table_id>/items/bulk-move', methods=['POST'])
def bulk_move(table_id):
    body = parse_body(BulkMoveRequest)
    with unit_of_work() as services:
        moved = services.items.bulk_move(
            table_id=table_id,
            item_ids=body.item_ids,
            target_group_id=body.target_group_id,
            target_index=body.target_index,
            expected_version=body.expected_version,
            operator_id=operator_id(),
        )
        return jsonify({
            "items": [QuantityItemDTO.from_orm_model(i).model_dump(mode="json") for i in moved],
            "table_version": _table_version(services, table_id),
        })
