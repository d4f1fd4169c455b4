# sekisan/models/audit_log.py
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, DateTime, Enum, JSON, func, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from sekisan.db.base import Base
from sekisan.db.enums import AuditEntityType, AuditAction


class AuditEntityTypeEnum(TypeDecorator):
    """
    Stores AuditEntityType as its lowercase value ("quantity_item").
    Accepts the enum, its value or its name when binding.
    """
    impl = String
    cache_ok = True

    def __init__(self):
        super().__init__(length=50)

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, AuditEntityType):
            return value.value
        text = str(value).strip()
        for member in AuditEntityType:
            if text.lower() in (member.value, member.name.lower()):
                return member.value
        raise ValueError(f"Cannot convert '{value}' to AuditEntityType")

    def process_result_value(self, value: Any, dialect) -> Optional[AuditEntityType]:
        if value is None:
            return None
        return AuditEntityType(value)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    # =========
    # 🔒 Immutable fields (no update, no delete)
    # =========
    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Audit log UUID")

    project_id :Mapped[Optional[str]] = mapped_column(String(36), nullable=True, comment="Associated project ID, if applicable")

    entity_type :Mapped[AuditEntityType] = mapped_column(
        AuditEntityTypeEnum(),
        nullable=False,
        comment="Type of the audited entity"
    )

    entity_id :Mapped[str] = mapped_column(String(36), nullable=False, comment="UUID of the audited entity")

    action :Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action"),
        nullable=False,
        comment="Type of action performed on the entity"
    )

    changed_attribute :Mapped[str] = mapped_column(String(100), nullable=False, comment="Attribute that was changed")

    # create has no before value, delete has no after value
    before_value :Mapped[Any] = mapped_column(JSON, nullable=True, comment="Value before the change")
    after_value :Mapped[Any] = mapped_column(JSON, nullable=True, comment="Value after the change")

    operator_id :Mapped[str] = mapped_column(String(100), nullable=False, comment="Operator who performed the action")

    timestamp :Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when the action was performed"
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog entity={self.entity_type.value} "
            f"entity_id={self.entity_id} "
            f"action={self.action.value}>"
        )
