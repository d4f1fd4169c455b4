from decimal import Decimal

import pytest

from sekisan.exceptions import QuantityOverflowError
from sekisan.services.itemized_statement_pivot_service import (
    aggregate,
    generate_group_key,
    sort_statement_items,
)


def row(quantity, **overrides):
    item = {
        "custom_category": "分類A",
        "work_type": "工種1",
        "name": "名称1",
        "specification": "規格1",
        "unit": "m",
        "quantity": Decimal(quantity),
    }
    item.update(overrides)
    return item


def test_same_key_rows_are_summed_at_two_places():
    rows = aggregate([row("10.111"), row("20.222")])
    assert len(rows) == 1
    assert rows[0].quantity == Decimal("30.33")
    assert rows[0].name == "名称1"


def test_any_differing_key_component_splits_rows():
    rows = aggregate([
        row("1"),
        row("2", unit="m2"),
        row("3", specification="規格2"),
        row("4"),
    ])
    assert [(r.unit, r.specification, r.quantity) for r in rows] == [
        ("m", "規格1", Decimal("5.00")),
        ("m2", "規格1", Decimal("2.00")),
        ("m", "規格2", Decimal("3.00")),
    ]


def test_null_and_empty_string_share_a_key():
    rows = aggregate([row("1", custom_category=None), row("2", custom_category="")])
    assert len(rows) == 1
    assert rows[0].quantity == Decimal("3.00")
    assert rows[0].custom_category is None


def test_output_keeps_first_occurrence_order():
    rows = aggregate([row("1", name="B"), row("1", name="A"), row("1", name="B")])
    assert [r.name for r in rows] == ["B", "A"]


def test_aggregation_is_idempotent():
    items = [row("1.5"), row("2", unit="kg"), row("3")]
    assert aggregate(items) == aggregate(items)


def test_objects_are_accepted_as_well_as_dicts():
    class Item:
        custom_category = None
        work_type = "工種1"
        name = "名称1"
        specification = None
        unit = "m"
        quantity = Decimal("2.5")

    rows = aggregate([Item(), Item()])
    assert rows[0].quantity == Decimal("5.00")


@pytest.mark.parametrize("quantities", [
    ("5000000", "5000000"),
    ("-600000", "-500000"),
])
def test_totals_out_of_range_overflow(quantities):
    with pytest.raises(QuantityOverflowError) as exc:
        aggregate([row(q) for q in quantities])
    assert exc.value.status_code == 422


def test_totals_at_the_bounds_are_allowed():
    rows = aggregate([row("9999999.98"), row("0.01")])
    assert rows[0].quantity == Decimal("9999999.99")


def test_group_key_text():
    assert generate_group_key(row("1")) == "分類A|工種1|名称1|規格1|m"
    assert generate_group_key(row("1", custom_category=None, specification="")) == "|工種1|名称1||m"


def test_sort_statement_items_puts_nulls_last():
    items = [
        row("1", custom_category=None, name="c"),
        row("1", custom_category="B", name="b"),
        row("1", custom_category="A", name="z"),
        row("1", custom_category="A", name="a"),
    ]
    ordered = sort_statement_items(items)
    assert [(i["custom_category"], i["name"]) for i in ordered] == [
        ("A", "a"), ("A", "z"), ("B", "b"), (None, "c"),
    ]
