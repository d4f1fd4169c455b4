from decimal import Decimal

import pytest

from sekisan.db.enums import CalculationMethod
from sekisan.exceptions import FieldValidationError
from sekisan.services.calculation_engine import AreaVolumeInput, PitchInput, StandardInput
from sekisan.services.calculation_method import (
    build_calculation_input,
    coerce_method,
    editable_fields,
    inert_fields,
    visible_fields,
)


def test_standard_hides_factor_fields():
    assert visible_fields(CalculationMethod.STANDARD) == ("manual_quantity",)
    assert "adjustment_factor" not in editable_fields("STANDARD")
    assert "rounding_unit" not in editable_fields("STANDARD")


def test_area_volume_fields():
    assert editable_fields("AREA_VOLUME") == frozenset(
        {"width", "depth", "height", "weight", "adjustment_factor", "rounding_unit"}
    )


def test_pitch_fields():
    assert editable_fields("pitch") == frozenset(
        {"range_length", "edge1", "edge2", "pitch_length", "length", "weight", "adjustment_factor", "rounding_unit"}
    )


def test_inactive_dimensions_are_inert():
    assert inert_fields("PITCH") == frozenset({"width", "depth", "height"})
    assert "weight" not in inert_fields("AREA_VOLUME")


def test_unknown_method_is_a_field_error():
    with pytest.raises(FieldValidationError):
        coerce_method("VOLUME")


def test_build_input_reads_only_the_active_method():
    fields = {
        "manual_quantity": Decimal("50"),
        "width": Decimal("10"),
        "range_length": Decimal("100"),
        "pitch_length": Decimal("25"),
    }
    assert build_calculation_input("STANDARD", fields) == StandardInput(quantity=Decimal("50"))
    assert build_calculation_input("AREA_VOLUME", fields) == AreaVolumeInput(width=Decimal("10"))
    assert build_calculation_input("PITCH", fields) == PitchInput(
        range_length=Decimal("100"), pitch_length=Decimal("25")
    )
