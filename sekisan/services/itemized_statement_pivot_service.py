"""
Pivot aggregation of quantity items into itemized-statement rows.

Items sharing (custom_category, work_type, name, specification, unit) are
merged into one row whose quantity is the Decimal sum of theirs. Rows keep
the order in which their key first appears.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sekisan.exceptions import QuantityOverflowError
from sekisan.logger import get_logger
from sekisan.utils.number_format import to_two_places

logger = get_logger(__name__)

KEY_FIELDS: Tuple[str, ...] = ("custom_category", "work_type", "name", "specification", "unit")

TOTAL_MIN = Decimal("-999999.99")
TOTAL_MAX = Decimal("9999999.99")

GroupKey = Tuple[str, str, str, str, str]


@dataclass(frozen=True)
class PivotRow:
    custom_category: Optional[str]
    work_type: Optional[str]
    name: Optional[str]
    specification: Optional[str]
    unit: Optional[str]
    quantity: Decimal

    def key(self) -> GroupKey:
        return tuple(_normalize(getattr(self, f)) for f in KEY_FIELDS)


def _get(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _normalize(value: Optional[str]) -> str:
    # None and "" are the same key component
    return "" if value is None else str(value)


def group_key(item: Any) -> GroupKey:
    return tuple(_normalize(_get(item, f)) for f in KEY_FIELDS)


def generate_group_key(item: Any) -> str:
    """'分類A|工種1|名称1|規格1|m'; missing components are empty."""
    return "|".join(group_key(item))


def aggregate(items: Iterable[Any]) -> List[PivotRow]:
    '''
    Aggregate quantity items (objects or dicts) into pivot rows.

    :param items: items in display order (group order, then item order)
    :return: one row per distinct key, first-occurrence order, quantity at 2 decimals
    :raises QuantityOverflowError: when any total leaves -999999.99..9999999.99
    '''
    totals: Dict[GroupKey, Decimal] = {}
    for item in items:
        key = group_key(item)
        quantity = _get(item, "quantity")
        amount = Decimal("0") if quantity is None else Decimal(quantity)
        totals[key] = totals.get(key, Decimal("0")) + amount

    rows: List[PivotRow] = []
    for key, total in totals.items():
        total = to_two_places(total)
        if total > TOTAL_MAX or total < TOTAL_MIN:
            text = "|".join(key)
            logger.warning(f"[Pivot] overflow key={text} total={total}")
            raise QuantityOverflowError(text, total, TOTAL_MIN, TOTAL_MAX)
        values = {f: (v or None) for f, v in zip(KEY_FIELDS, key)}
        rows.append(PivotRow(quantity=total, **values))
    return rows


def _sort_component(value: Optional[str]):
    # nulls last
    return (value is None or value == "", value or "")


def sort_statement_items(items: Iterable[Any]) -> List[Any]:
    """Default detail order: custom_category, work_type, name, specification ascending, nulls last."""
    return sorted(
        items,
        key=lambda i: tuple(_sort_component(_get(i, f)) for f in KEY_FIELDS[:4]),
    )
