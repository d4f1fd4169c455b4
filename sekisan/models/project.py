# sekisan/models/project.py
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from sekisan.db.base import Base
from sekisan.models.mixins.timestamps import TimestampMixin


class Project(Base, TimestampMixin):
    """Owner of quantity tables and itemized statements."""

    __tablename__ = "projects"

    # =========
    # 🔒 Identity
    # =========
    id :Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment='Project UUID')
    name :Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment='Project name')

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name}>"
