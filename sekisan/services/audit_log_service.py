# sekisan/services/audit_log_service.py
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Union
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from sekisan.db.enums import AuditAction, AuditEntityType
from sekisan.models.audit_log import AuditLog


class AuditLogService:
    """
    Centralized service for recording all auditable actions.
    This service is the ONLY place where AuditLog records are created.
    """

    def __init__(self, db: Session):
        self.db = db

    def serialize_audit_value(self, value) -> Any:
        if value is None:
            return None
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (int, float, str, bool)):
            return value
        if isinstance(value, dict):
            return {k: self.serialize_audit_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.serialize_audit_value(v) for v in value]
        return str(value)

    def _normalize_entity_type(self, entity_type: Union[str, AuditEntityType]) -> AuditEntityType:
        '''
        Accepts the enum, its value ("quantity_item") or its name ("QuantityItem").
        '''
        if isinstance(entity_type, AuditEntityType):
            return entity_type
        text = str(entity_type).strip()
        for member in AuditEntityType:
            if text.lower() in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown entity_type: {text}. Valid values: {[e.value for e in AuditEntityType]}")

    def _record(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        action: AuditAction,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
        operator_id: str,
    ) -> AuditLog:
        log = AuditLog(
            id=str(uuid4()),
            project_id=project_id,
            entity_type=self._normalize_entity_type(entity_type),
            entity_id=entity_id,
            action=action,
            changed_attribute=changed_attribute,
            before_value=self.serialize_audit_value(before_value),
            after_value=self.serialize_audit_value(after_value),
            operator_id=operator_id,
            timestamp=datetime.now(),
        )
        self.db.add(log)
        return log

    def record_create(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        operator_id: str,
        after_value: Any = None,
    ) -> AuditLog:
        '''
        Record the creation of a project, table, group, item or statement.

        :param project_id: owning project, optional
        :param entity_type: AuditEntityType or its string form
        :param entity_id: id of the created entity
        :param operator_id: operator who performed the action
        '''
        return self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.create,
            changed_attribute="__all__",
            before_value=None,
            after_value=after_value,
            operator_id=operator_id,
        )

    def record_update(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
        operator_id: str,
    ) -> AuditLog:
        '''
        Record one attribute change (field edit, rename, reorder, method switch).
        '''
        return self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.update,
            changed_attribute=changed_attribute,
            before_value=before_value,
            after_value=after_value,
            operator_id=operator_id,
        )

    def record_delete(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        operator_id: str,
        before_value: Any = None,
    ) -> AuditLog:
        return self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.delete,
            changed_attribute="__all__",
            before_value=before_value,
            after_value=None,
            operator_id=operator_id,
        )

    def record_system_update(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
    ) -> AuditLog:
        '''
        Changes made by the system rather than an operator, e.g. a quantity
        recomputed because its inputs changed.
        '''
        return self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.system,
            changed_attribute=changed_attribute,
            before_value=before_value,
            after_value=after_value,
            operator_id="SYSTEM",
        )

    def list_for_entity(self, entity_id: str) -> List[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_id == entity_id)
            .order_by(AuditLog.timestamp.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
