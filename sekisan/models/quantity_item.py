# sekisan/models/quantity_item.py
from decimal import Decimal
from typing import Any, Dict, Optional, TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sekisan.db.base import Base
from sekisan.db.enums import CalculationMethod
from sekisan.models.mixins.timestamps import TimestampMixin
from sekisan.services.calculation_engine import (
    CalculationResult,
    DEFAULT_ADJUSTMENT_FACTOR,
    DEFAULT_ROUNDING_UNIT,
    calculate,
)
from sekisan.services.calculation_method import DIMENSION_FIELDS, build_calculation_input, coerce_method

if TYPE_CHECKING:
    from sekisan.models.quantity_group import QuantityGroup


TEXT_FIELDS = (
    "major_category",
    "middle_category",
    "minor_category",
    "custom_category",
    "work_type",
    "name",
    "specification",
    "unit",
    "remarks",
)

# copied verbatim by copy_item; id / group / display_order are not
VALUE_FIELDS = TEXT_FIELDS + (
    "calculation_method",
    *DIMENSION_FIELDS,
    "adjustment_factor",
    "rounding_unit",
    "manual_quantity",
)


def new_item_defaults() -> Dict[str, Any]:
    return {
        "calculation_method": CalculationMethod.STANDARD,
        "adjustment_factor": DEFAULT_ADJUSTMENT_FACTOR,
        "rounding_unit": DEFAULT_ROUNDING_UNIT,
        "manual_quantity": Decimal("0"),
        "quantity": Decimal("0"),
    }


class QuantityItem(Base, TimestampMixin):
    """
    One line of a quantity table.

    Invariants:
    - quantity is always the result of recalculate() for the current inputs
    - fields of an inactive calculation method are kept but never read
    - manual_quantity keeps the last STANDARD value across method switches
    """

    __tablename__ = "quantity_items"

    # =========
    # 🔒 Identity & position
    # =========
    id :Mapped[str] = mapped_column(String(36), primary_key=True, comment="Quantity item UUID")

    quantity_group_id :Mapped[str] = mapped_column(
        String(36),
        ForeignKey("quantity_groups.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning quantity group ID",
    )

    display_order :Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0-based position within the group",
    )

    # =========
    # 🔤 Classification & naming
    # =========
    major_category :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="大項目")
    middle_category :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="中項目")
    minor_category :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="小項目")
    custom_category :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="任意分類")
    work_type :Mapped[Optional[str]] = mapped_column(String(16), nullable=True, comment="工種")
    name :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="名称")
    specification :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="規格")
    unit :Mapped[Optional[str]] = mapped_column(String(6), nullable=True, comment="単位")
    remarks :Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="備考")

    # =========
    # 🧮 Calculation method & inputs
    # =========
    calculation_method :Mapped[CalculationMethod] = mapped_column(
        Enum(CalculationMethod, name="calculation_method"),
        nullable=False,
        default=CalculationMethod.STANDARD,
        comment="Active calculation method",
    )

    width :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="W (AREA_VOLUME)")
    depth :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="D (AREA_VOLUME)")
    height :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="H (AREA_VOLUME)")
    weight :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Weight (AREA_VOLUME / PITCH)")

    range_length :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Range (PITCH)")
    edge1 :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Edge 1 (PITCH)")
    edge2 :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Edge 2 (PITCH)")
    pitch_length :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Pitch (PITCH)")
    length :Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True, comment="Length (PITCH)")

    adjustment_factor :Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=DEFAULT_ADJUSTMENT_FACTOR,
        comment="調整係数, applied to AREA_VOLUME / PITCH results",
    )
    rounding_unit :Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=DEFAULT_ROUNDING_UNIT,
        comment="丸め設定, results are rounded up to a multiple of this",
    )

    # =========
    # 🔢 Quantity
    # =========
    manual_quantity :Mapped[Decimal] = mapped_column(
        Numeric(9, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Quantity typed in STANDARD mode",
    )
    quantity :Mapped[Decimal] = mapped_column(
        Numeric(9, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Derived quantity, maintained by recalculate()",
    )

    group :Mapped["QuantityGroup"] = relationship(back_populates="items")

    # =========
    # 🧮 Behaviour
    # =========
    @classmethod
    def new(cls, **fields) -> "QuantityItem":
        """Transient item with STANDARD defaults; fields override the defaults."""
        values = new_item_defaults()
        values.update({k: v for k, v in fields.items() if v is not None or k not in values})
        values["calculation_method"] = coerce_method(values["calculation_method"])
        values.setdefault("id", str(uuid4()))
        item = cls(**values)
        item.recalculate()
        return item

    def recalculate(self) -> CalculationResult:
        result = calculate(
            build_calculation_input(self.calculation_method, self),
            self.adjustment_factor,
            self.rounding_unit,
        )
        self.quantity = result.final_value
        return result

    def value_fields(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in VALUE_FIELDS}

    def clone(self) -> "QuantityItem":
        return QuantityItem.new(**self.value_fields())

    def __repr__(self) -> str:
        return (
            f"<QuantityItem id={self.id} "
            f"name={self.name} "
            f"method={self.calculation_method} "
            f"quantity={self.quantity}>"
        )
