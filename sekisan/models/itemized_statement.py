# sekisan/models/itemized_statement.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sekisan.db.base import Base
from sekisan.exceptions import ConcurrencyConflictError
from sekisan.models.mixins.timestamps import TimestampMixin


class ItemizedStatementItem(Base):
    """
    One aggregated row of a statement.
    Written once when the statement is created, never recomputed.
    """

    __tablename__ = "itemized_statement_items"

    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Statement item UUID")

    itemized_statement_id :Mapped[str] = mapped_column(
        String(36),
        ForeignKey("itemized_statements.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning itemized statement ID",
    )

    # =========
    # 🔑 Aggregation key
    # =========
    custom_category :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="任意分類")
    work_type :Mapped[Optional[str]] = mapped_column(String(16), nullable=True, comment="工種")
    name :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="名称")
    specification :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="規格")
    unit :Mapped[Optional[str]] = mapped_column(String(6), nullable=True, comment="単位")

    # =========
    # 💰 Snapshot value
    # =========
    quantity :Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False, comment="Summed quantity")

    display_order :Mapped[int] = mapped_column(Integer, nullable=False, comment="0-based row position")

    statement :Mapped["ItemizedStatement"] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<ItemizedStatementItem name={self.name} "
            f"unit={self.unit} "
            f"quantity={self.quantity}>"
        )


class ItemizedStatement(Base, TimestampMixin):
    """
    Immutable pivot snapshot of a quantity table.

    Only the name can be changed afterwards. The source table is referenced
    by id and name only; editing or deleting it leaves the statement as is.
    """

    __tablename__ = "itemized_statements"

    # =========
    # 🔒 Identity & ownership
    # =========
    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Itemized statement UUID")

    project_id :Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
        comment="Project ID",
    )

    name :Mapped[str] = mapped_column(String(200), nullable=False, comment="Statement name, unique per project")

    # =========
    # 📎 Source anchor (denormalized)
    # =========
    source_quantity_table_id :Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment="Quantity table the snapshot was taken from",
    )
    source_quantity_table_name :Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Name of the source table at snapshot time",
    )

    item_count :Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="Number of rows")

    # =========
    # 📌 Lifecycle
    # =========
    version :Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Optimistic concurrency token",
    )

    deleted_at :Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Logical delete timestamp",
    )

    items :Mapped[List[ItemizedStatementItem]] = relationship(
        back_populates="statement",
        order_by=ItemizedStatementItem.display_order,
        cascade="all, delete-orphan",
    )

    def check_version(self, expected_version: int) -> None:
        if expected_version is None or int(expected_version) != self.version:
            raise ConcurrencyConflictError("ItemizedStatement", self.id, expected_version, self.version)

    def bump_version(self) -> int:
        self.version = (self.version or 0) + 1
        return self.version

    def __repr__(self) -> str:
        return (
            f"<ItemizedStatement id={self.id} "
            f"project={self.project_id} "
            f"name={self.name} "
            f"items={self.item_count}>"
        )
