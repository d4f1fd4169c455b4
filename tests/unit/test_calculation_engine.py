from decimal import Decimal

import pytest

from sekisan.services.calculation_engine import (
    AreaVolumeInput,
    PitchInput,
    StandardInput,
    apply_rounding,
    area_volume_formula,
    calculate,
    compute_quantity,
    pitch_count,
)

D = Decimal


def test_area_volume_multiplies_dimensions():
    result = compute_quantity(AreaVolumeInput(width=D("10"), depth=D("5"), height=D("2")), D("1.00"), D("0.01"))
    assert result == D("100.00")
    assert str(result) == "100.00"


def test_area_volume_skips_blank_dimensions():
    assert compute_quantity(AreaVolumeInput(width=D("10"), height=D("2"))) == D("20.00")
    assert compute_quantity(AreaVolumeInput(width=D("3"), weight=D("2.5"))) == D("7.50")


def test_area_volume_without_dimensions_is_zero():
    assert compute_quantity(AreaVolumeInput()) == D("0.00")


def test_rounding_goes_up_to_the_unit():
    assert compute_quantity(AreaVolumeInput(width=D("53")), D("1"), D("10")) == D("60.00")
    assert compute_quantity(AreaVolumeInput(width=D("100")), D("1"), D("10")) == D("100.00")
    assert apply_rounding(D("10.2"), D("0.5")) == D("10.50")


@pytest.mark.parametrize("unit", [None, D("0"), D("-1")])
def test_non_positive_rounding_unit_falls_back_to_hundredths(unit):
    assert apply_rounding(D("1.234"), unit) == D("1.24")


def test_adjustment_factor_applies_before_rounding():
    assert compute_quantity(AreaVolumeInput(width=D("10")), D("1.10"), D("0.01")) == D("11.00")
    assert compute_quantity(AreaVolumeInput(width=D("10")), D("-1.05"), D("0.01")) == D("-10.50")


def test_pitch_count():
    assert pitch_count(PitchInput(range_length=D("100"), edge1=D("0"), edge2=D("0"), pitch_length=D("25"))) == 5
    assert pitch_count(PitchInput(range_length=D("1000"), edge1=D("50"), edge2=D("50"), pitch_length=D("200"))) == 5
    # missing edges count as zero
    assert pitch_count(PitchInput(range_length=D("90"), pitch_length=D("20"))) == 5


def test_pitch_quantity():
    params = PitchInput(range_length=D("100"), edge1=D("0"), edge2=D("0"), pitch_length=D("25"))
    assert compute_quantity(params, D("1.00"), D("0.01")) == D("5.00")


def test_pitch_multiplies_length_and_weight():
    params = PitchInput(range_length=D("100"), pitch_length=D("25"), length=D("2"), weight=D("1.5"))
    assert compute_quantity(params) == D("15.00")


def test_pitch_with_no_effective_range_counts_one():
    params = PitchInput(range_length=D("100"), edge1=D("60"), edge2=D("50"), pitch_length=D("10"))
    assert compute_quantity(params) == D("1.00")


@pytest.mark.parametrize("params", [
    PitchInput(range_length=D("100"), pitch_length=D("0")),
    PitchInput(range_length=D("100"), pitch_length=D("-5")),
    PitchInput(pitch_length=D("10")),
    PitchInput(range_length=D("100")),
])
def test_pitch_without_usable_inputs_is_zero(params):
    assert compute_quantity(params) == D("0.00")


def test_standard_ignores_factor_and_rounding():
    assert compute_quantity(StandardInput(quantity=D("50")), D("2.00"), D("10")) == D("50.00")
    assert compute_quantity(StandardInput(quantity=D("-3.456"))) == D("-3.46")
    assert compute_quantity(StandardInput()) == D("0.00")


def test_calculate_reports_intermediate_values():
    result = calculate(AreaVolumeInput(width=D("53")), D("1.00"), D("10"))
    assert result.raw_value == D("53")
    assert result.adjusted_value == D("53.00")
    assert result.final_value == D("60.00")
    assert area_volume_formula(AreaVolumeInput(width=D("10"), depth=D("5"), height=D("2"))) == "10 x 5 x 2 = 100"


def test_calculate_rejects_unknown_input():
    with pytest.raises(TypeError):
        calculate(object())


def test_pitch_with_both_edges():
    params = PitchInput(range_length=D("1000"), edge1=D("100"), edge2=D("100"), pitch_length=D("200"))
    assert pitch_count(params) == 5
    assert compute_quantity(params, D("1.00"), D("0.01")) == D("5.00")
