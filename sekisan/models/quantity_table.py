# sekisan/models/quantity_table.py
from datetime import datetime
from typing import Iterator, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sekisan.db.base import Base
from sekisan.exceptions import ConcurrencyConflictError, NotFoundError
from sekisan.models.mixins.timestamps import TimestampMixin
from sekisan.models.quantity_group import QuantityGroup
from sekisan.models.quantity_item import QuantityItem


def _clamp(index: int, upper: int) -> int:
    return max(0, min(int(index), upper))


class QuantityTable(Base, TimestampMixin):
    """
    Aggregate root: table -> ordered groups -> ordered items.

    Structural operations work on the in-memory collections (no session
    needed) and always finish with renumber(), so display_order is exactly
    0..n-1 for the groups of the table and for the items of every group.
    """

    __tablename__ = "quantity_tables"

    # =========
    # 🔒 Identity & ownership
    # =========
    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Quantity table UUID")

    project_id :Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
        comment="Project ID",
    )

    # =========
    # ✍️ Editable
    # =========
    name :Mapped[str] = mapped_column(String(200), nullable=False, comment="Quantity table name")

    # =========
    # 🔁 System maintained
    # =========
    version :Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Optimistic concurrency token, bumped on every change",
    )

    deleted_at :Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Soft delete timestamp",
    )

    groups :Mapped[List[QuantityGroup]] = relationship(
        back_populates="table",
        order_by=QuantityGroup.display_order,
        cascade="all, delete-orphan",
    )

    # =========
    # 🔁 Concurrency
    # =========
    def check_version(self, expected_version: int) -> None:
        if expected_version is None or int(expected_version) != self.version:
            raise ConcurrencyConflictError("QuantityTable", self.id, expected_version, self.version)

    def bump_version(self) -> int:
        self.version = (self.version or 0) + 1
        return self.version

    # =========
    # 🔎 Lookup
    # =========
    def find_group(self, group_id: str) -> QuantityGroup:
        for group in self.groups:
            if group.id == group_id:
                return group
        raise NotFoundError("QuantityGroup", group_id)

    def locate_item(self, item_id: str) -> Tuple[QuantityGroup, int]:
        for group in self.groups:
            for index, item in enumerate(group.items):
                if item.id == item_id:
                    return group, index
        raise NotFoundError("QuantityItem", item_id)

    def find_item(self, item_id: str) -> QuantityItem:
        group, index = self.locate_item(item_id)
        return group.items[index]

    def iter_items(self) -> Iterator[QuantityItem]:
        """Items in group order, then item order."""
        for group in self.groups:
            yield from group.items

    def item_count(self) -> int:
        return sum(len(group.items) for group in self.groups)

    # =========
    # 🧱 Structural operations
    # =========
    def add_group(
        self,
        *,
        name: Optional[str] = None,
        survey_image_id: Optional[str] = None,
        has_annotation: bool = False,
    ) -> QuantityGroup:
        group = QuantityGroup(
            id=str(uuid4()),
            name=name,
            survey_image_id=survey_image_id,
            has_annotation=has_annotation,
            display_order=len(self.groups),
        )
        self.groups.append(group)
        self.renumber()
        return group

    def remove_group(self, group_id: str) -> QuantityGroup:
        group = self.find_group(group_id)
        self.groups.remove(group)
        self.renumber()
        return group

    def move_group(self, group_id: str, target_index: int) -> QuantityGroup:
        group = self.find_group(group_id)
        self.groups.remove(group)
        self.groups.insert(_clamp(target_index, len(self.groups)), group)
        self.renumber()
        return group

    def add_item(self, group_id: str, **fields) -> QuantityItem:
        group = self.find_group(group_id)
        item = QuantityItem.new(**fields)
        group.items.append(item)
        self.renumber()
        return item

    def remove_item(self, item_id: str) -> QuantityItem:
        group, index = self.locate_item(item_id)
        item = group.items.pop(index)
        self.renumber()
        return item

    def copy_item(self, item_id: str) -> QuantityItem:
        '''
        Duplicate an item right after the source (new id, same values).
        '''
        group, index = self.locate_item(item_id)
        copy = group.items[index].clone()
        group.items.insert(index + 1, copy)
        self.renumber()
        return copy

    def move_item(self, item_id: str, target_index: int, target_group_id: Optional[str] = None) -> QuantityItem:
        '''
        Move an item within its group or into another group of this table.

        :param target_index: position in the destination group after the move (clamped)
        :param target_group_id: destination group; None keeps the current group
        '''
        source, index = self.locate_item(item_id)
        target = source if target_group_id is None else self.find_group(target_group_id)
        item = source.items.pop(index)
        target.items.insert(_clamp(target_index, len(target.items)), item)
        self.renumber()
        return item

    def renumber(self) -> None:
        for group_index, group in enumerate(self.groups):
            group.display_order = group_index
            for item_index, item in enumerate(group.items):
                item.display_order = item_index

    def __repr__(self) -> str:
        return (
            f"<QuantityTable id={self.id} "
            f"name={self.name} "
            f"version={self.version}>"
        )
