from datetime import datetime
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sekisan.exceptions import FieldValidationError, NotFoundError
from sekisan.logger import get_logger
from sekisan.models.project import Project
from sekisan.models.quantity_table import QuantityTable
from sekisan.services.audit_log_service import AuditLogService

logger = get_logger(__name__)

TABLE_NAME_MAX_LENGTH = 200
MAX_PAGE_SIZE = 100


def validate_page(page: int, limit: int) -> Tuple[int, int]:
    page, limit = int(page), int(limit)
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise FieldValidationError([{
            "field": "page",
            "message": f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}",
            "value": f"page={page}, limit={limit}",
        }])
    return page, limit


class QuantityTableService:
    """
    Lifecycle of quantity tables (create / rename / soft delete / list).

    Group and item edits go through QuantityGroupService and
    QuantityItemService, which load the table through get_table().
    """

    def __init__(
        self,
        db: Session,
        audit_log_service: AuditLogService,
    ):
        self.db = db
        self.audit_log_service = audit_log_service

    def _validate_name(self, name: Optional[str]) -> str:
        if name is None or not name.strip():
            raise FieldValidationError([{"field": "name", "message": "数量表名は必須です", "value": name}])
        name = name.strip()
        if len(name) > TABLE_NAME_MAX_LENGTH:
            raise FieldValidationError([{
                "field": "name",
                "message": f"数量表名は{TABLE_NAME_MAX_LENGTH}文字以内で入力してください",
                "value": name,
            }])
        return name

    def create_table(
        self,
        *,
        project_id: str,
        name: str,
        operator_id: str,
    ) -> QuantityTable:
        name = self._validate_name(name)
        if not self.db.get(Project, project_id):
            raise NotFoundError("Project", project_id)

        table = QuantityTable(
            id=str(uuid4()),
            project_id=project_id,
            name=name,
            version=1,
            created_at=datetime.now(),
        )
        self.db.add(table)
        self.db.flush()

        self.audit_log_service.record_create(
            project_id=project_id,
            entity_type="quantity_table",
            entity_id=table.id,
            operator_id=operator_id,
            after_value={"name": name},
        )
        logger.info(f"[QuantityTable] created id={table.id} project={project_id}")
        return table

    def get_table(self, table_id: str) -> QuantityTable:
        '''
        Load a live (not soft-deleted) quantity table.

        :raises NotFoundError: unknown id or deleted table
        '''
        table = self.db.get(QuantityTable, table_id)
        if not table or table.deleted_at is not None:
            raise NotFoundError("QuantityTable", table_id)
        return table

    def list_tables(
        self,
        *,
        project_id: str,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[QuantityTable], int]:
        page, limit = validate_page(page, limit)

        conditions = [
            QuantityTable.project_id == project_id,
            QuantityTable.deleted_at.is_(None),
        ]
        if search:
            conditions.append(QuantityTable.name.contains(search, autoescape=True))

        total = self.db.execute(
            select(func.count()).select_from(QuantityTable).where(*conditions)
        ).scalar_one()

        stmt = (
            select(QuantityTable)
            .where(*conditions)
            .order_by(QuantityTable.created_at.desc(), QuantityTable.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def rename_table(
        self,
        *,
        table_id: str,
        name: str,
        expected_version: int,
        operator_id: str,
    ) -> QuantityTable:
        table = self.get_table(table_id)
        table.check_version(expected_version)
        name = self._validate_name(name)

        old_name = table.name
        if old_name != name:
            table.name = name
            self.audit_log_service.record_update(
                project_id=table.project_id,
                entity_type="quantity_table",
                entity_id=table.id,
                changed_attribute="name",
                before_value=old_name,
                after_value=name,
                operator_id=operator_id,
            )
            table.bump_version()
        self.db.flush()
        return table

    def delete_table(
        self,
        *,
        table_id: str,
        expected_version: int,
        operator_id: str,
    ) -> None:
        '''
        Soft delete. Itemized statements created from the table are not touched.
        '''
        table = self.get_table(table_id)
        table.check_version(expected_version)

        table.deleted_at = datetime.now()
        table.bump_version()
        self.audit_log_service.record_delete(
            project_id=table.project_id,
            entity_type="quantity_table",
            entity_id=table.id,
            operator_id=operator_id,
            before_value={"name": table.name},
        )
        self.db.flush()
        logger.info(f"[QuantityTable] deleted id={table.id}")
