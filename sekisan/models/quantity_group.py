# sekisan/models/quantity_group.py
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sekisan.db.base import Base
from sekisan.models.mixins.timestamps import TimestampMixin
from sekisan.models.quantity_item import QuantityItem

if TYPE_CHECKING:
    from sekisan.models.quantity_table import QuantityTable


class QuantityGroup(Base, TimestampMixin):
    """
    A block of items inside a quantity table, optionally tied to a survey photo.
    """

    __tablename__ = "quantity_groups"

    # =========
    # 🔒 Identity & position
    # =========
    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Quantity group UUID")

    quantity_table_id :Mapped[str] = mapped_column(
        String(36),
        ForeignKey("quantity_tables.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning quantity table ID",
    )

    display_order :Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0-based position within the table",
    )

    # =========
    # ✍️ Editable
    # =========
    name :Mapped[Optional[str]] = mapped_column(String(200), nullable=True, comment="Group name")

    survey_image_id :Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        comment="Linked survey photo ID",
    )

    has_annotation :Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
        comment="Whether the linked photo carries annotations",
    )

    table :Mapped["QuantityTable"] = relationship(back_populates="groups")

    items :Mapped[List[QuantityItem]] = relationship(
        back_populates="group",
        order_by=QuantityItem.display_order,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<QuantityGroup id={self.id} "
            f"order={self.display_order} "
            f"items={len(self.items)}>"
        )
