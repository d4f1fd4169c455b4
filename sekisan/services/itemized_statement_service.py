import io
from datetime import datetime
from typing import List, Optional, Tuple, Union
from uuid import uuid4

import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sekisan.db.enums import SortOrder, StatementSortField
from sekisan.exceptions import (
    DuplicateNameError,
    EmptyQuantityTableError,
    FieldValidationError,
    NotFoundError,
)
from sekisan.logger import get_logger
from sekisan.models.itemized_statement import ItemizedStatement, ItemizedStatementItem
from sekisan.models.project import Project
from sekisan.services.audit_log_service import AuditLogService
from sekisan.services.itemized_statement_pivot_service import aggregate, sort_statement_items
from sekisan.services.quantity_table_service import QuantityTableService, validate_page
from sekisan.utils.number_format import format_for_display

logger = get_logger(__name__)

STATEMENT_NAME_MAX_LENGTH = 200
LATEST_STATEMENT_LIMIT = 2

REPORT_COLUMNS = ["任意分類", "工種", "名称", "規格", "単位", "数量"]


class ItemizedStatementService:
    """
    Generate immutable itemized statements (pivot snapshots of a quantity table).

    After creation only the name can change; rows are never recomputed.
    """

    def __init__(
        self,
        db: Session,
        audit_log_service: AuditLogService,
        quantity_table_service: QuantityTableService,
    ):
        self.db = db
        self.audit_log_service = audit_log_service
        self.quantity_table_service = quantity_table_service

    def _validate_name(self, name: Optional[str]) -> str:
        if name is None or not name.strip():
            raise FieldValidationError([{"field": "name", "message": "内訳書名は必須です", "value": name}])
        name = name.strip()
        if len(name) > STATEMENT_NAME_MAX_LENGTH:
            raise FieldValidationError([{
                "field": "name",
                "message": f"内訳書名は{STATEMENT_NAME_MAX_LENGTH}文字以内で入力してください",
                "value": name,
            }])
        return name

    def _assert_name_available(self, project_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        stmt = select(ItemizedStatement.id).where(
            ItemizedStatement.project_id == project_id,
            ItemizedStatement.name == name,
            ItemizedStatement.deleted_at.is_(None),
        )
        if exclude_id:
            stmt = stmt.where(ItemizedStatement.id != exclude_id)
        if self.db.execute(stmt).first() is not None:
            raise DuplicateNameError(name, project_id)

    def create_statement(
        self,
        *,
        project_id: str,
        quantity_table_id: str,
        name: str,
        operator_id: str,
    ) -> ItemizedStatement:
        """
        Aggregate the table's items and persist the result as a new statement.

        :param project_id: owning project
        :param quantity_table_id: source quantity table (must belong to the project)
        :param name: statement name, unique among live statements of the project
        :param operator_id: operator performing the action
        :raises EmptyQuantityTableError: the table has no items
        :raises QuantityOverflowError: a total is out of range; nothing is persisted
        """
        # 1️⃣ inputs
        name = self._validate_name(name)
        if not self.db.get(Project, project_id):
            raise NotFoundError("Project", project_id)
        table = self.quantity_table_service.get_table(quantity_table_id)
        if table.project_id != project_id:
            raise NotFoundError("QuantityTable", quantity_table_id)

        items = list(table.iter_items())
        if not items:
            raise EmptyQuantityTableError(quantity_table_id)
        self._assert_name_available(project_id, name)

        # 2️⃣ pivot (raises before anything is added to the session)
        rows = aggregate(items)

        # 3️⃣ snapshot
        statement = ItemizedStatement(
            id=str(uuid4()),
            project_id=project_id,
            name=name,
            source_quantity_table_id=table.id,
            source_quantity_table_name=table.name,
            item_count=len(rows),
            version=1,
            created_at=datetime.now(),
        )
        statement.items = [
            ItemizedStatementItem(
                id=str(uuid4()),
                custom_category=row.custom_category,
                work_type=row.work_type,
                name=row.name,
                specification=row.specification,
                unit=row.unit,
                quantity=row.quantity,
                display_order=index,
            )
            for index, row in enumerate(rows)
        ]
        self.db.add(statement)
        self.db.flush()

        self.audit_log_service.record_create(
            project_id=project_id,
            entity_type="itemized_statement",
            entity_id=statement.id,
            operator_id=operator_id,
            after_value={"name": name, "source_quantity_table_id": table.id, "item_count": len(rows)},
        )
        logger.info(
            f"[ItemizedStatement] created id={statement.id} table={table.id} "
            f"source_items={len(items)} rows={len(rows)}"
        )
        return statement

    def get_statement(self, statement_id: str) -> ItemizedStatement:
        statement = self.db.get(ItemizedStatement, statement_id)
        if not statement or statement.deleted_at is not None:
            raise NotFoundError("ItemizedStatement", statement_id)
        return statement

    def list_statements(
        self,
        *,
        project_id: str,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: Union[str, StatementSortField] = StatementSortField.created_at,
        order: Union[str, SortOrder] = SortOrder.desc,
    ) -> Tuple[List[ItemizedStatement], int]:
        '''
        Live statements of a project with name search and paging.

        :return: (statements of the page, total matching count)
        '''
        page, limit = validate_page(page, limit)
        try:
            sort_by = StatementSortField(getattr(sort_by, "value", sort_by))
            order = SortOrder(getattr(order, "value", order))
        except ValueError as e:
            raise FieldValidationError([{"field": "sort", "message": str(e), "value": None}])

        conditions = [
            ItemizedStatement.project_id == project_id,
            ItemizedStatement.deleted_at.is_(None),
        ]
        if search:
            conditions.append(ItemizedStatement.name.contains(search, autoescape=True))

        total = self.db.execute(
            select(func.count()).select_from(ItemizedStatement).where(*conditions)
        ).scalar_one()

        column = getattr(ItemizedStatement, sort_by.value)
        ordering = column.asc() if order == SortOrder.asc else column.desc()
        stmt = (
            select(ItemizedStatement)
            .where(*conditions)
            .order_by(ordering, ItemizedStatement.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def latest_statements(
        self,
        *,
        project_id: str,
        limit: int = LATEST_STATEMENT_LIMIT,
    ) -> Tuple[List[ItemizedStatement], int]:
        """Most recent statements for the project overview, plus the total count."""
        return self.list_statements(project_id=project_id, page=1, limit=limit)

    def rename_statement(
        self,
        *,
        statement_id: str,
        name: str,
        expected_version: int,
        operator_id: str,
    ) -> ItemizedStatement:
        statement = self.get_statement(statement_id)
        statement.check_version(expected_version)
        name = self._validate_name(name)
        if name == statement.name:
            return statement
        self._assert_name_available(statement.project_id, name, exclude_id=statement.id)

        old_name = statement.name
        statement.name = name
        statement.bump_version()
        self.audit_log_service.record_update(
            project_id=statement.project_id,
            entity_type="itemized_statement",
            entity_id=statement.id,
            changed_attribute="name",
            before_value=old_name,
            after_value=name,
            operator_id=operator_id,
        )
        self.db.flush()
        return statement

    def delete_statement(
        self,
        *,
        statement_id: str,
        expected_version: int,
        operator_id: str,
    ) -> None:
        '''
        Logical delete. A stale version raises ConcurrencyConflictError and the
        statement stays.
        '''
        statement = self.get_statement(statement_id)
        statement.check_version(expected_version)

        statement.deleted_at = datetime.now()
        statement.bump_version()
        self.audit_log_service.record_delete(
            project_id=statement.project_id,
            entity_type="itemized_statement",
            entity_id=statement.id,
            operator_id=operator_id,
            before_value={"name": statement.name},
        )
        self.db.flush()
        logger.info(f"[ItemizedStatement] deleted id={statement.id}")

    # =========
    # 📄 Report
    # =========
    def generate_df_report(
        self,
        statement: ItemizedStatement,
        *,
        sort: bool = False,
    ) -> pd.DataFrame:
        """
        Human-readable statement DataFrame (one row per statement item).
        Quantities are rendered as 2-decimal strings.

        This function does NOT persist data.
        """
        items = sort_statement_items(statement.items) if sort else list(statement.items)
        rows = [
            [
                i.custom_category or "",
                i.work_type or "",
                i.name or "",
                i.specification or "",
                i.unit or "",
                format_for_display(i.quantity),
            ]
            for i in items
        ]
        return pd.DataFrame(rows, columns=REPORT_COLUMNS)

    def to_excel(self, statement: ItemizedStatement, *, sort: bool = False) -> io.BytesIO:
        df = self.generate_df_report(statement, sort=sort)

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="内訳書")
            sheet = writer.sheets["内訳書"]
            sheet.append([])
            sheet.append(["数量表", statement.source_quantity_table_name])
            sheet.append(["作成日時", statement.created_at.strftime("%Y.%m.%d %H:%M") if statement.created_at else ""])
        output.seek(0)
        return output
