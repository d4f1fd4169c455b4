from decimal import Decimal

import pytest

from sekisan.exceptions import FieldValidationError, InvalidNumericInputError
from sekisan.services.quantity_validation_service import (
    QuantityValidationService,
    calculate_string_width,
)


@pytest.fixture
def validator():
    return QuantityValidationService()


def complete_item(**overrides):
    fields = {
        "major_category": "建築",
        "work_type": "躯体",
        "name": "コンクリート",
        "unit": "m3",
        "calculation_method": "STANDARD",
        "manual_quantity": Decimal("10"),
        "adjustment_factor": Decimal("1.00"),
        "rounding_unit": Decimal("0.01"),
    }
    fields.update(overrides)
    return fields


def test_string_width():
    assert calculate_string_width("あ") == 2
    assert calculate_string_width("ｱ") == 1
    assert calculate_string_width("abc") == 3
    assert calculate_string_width("鉄筋D13") == 7


def test_full_width_text_limit(validator):
    assert validator.validate_text_field("name", "あ" * 25) is None
    issue = validator.validate_text_field("name", "あ" * 26)
    assert issue is not None and issue.field == "name"


def test_work_type_and_unit_limits(validator):
    assert validator.validate_text_field("work_type", "あ" * 8) is None
    assert validator.validate_text_field("work_type", "あ" * 9) is not None
    assert validator.validate_text_field("unit", "ｍ3ｍ3") is None
    assert validator.validate_text_field("unit", "abcdefg") is not None


def test_rounding_unit_zero_is_warned_and_reset(validator):
    commit = validator.commit_numeric_field("rounding_unit", "0")
    assert commit.value == Decimal("0.01")
    assert len(commit.report.warnings) == 1
    assert len(commit.report.corrections) == 1
    assert commit.report.is_valid


def test_rounding_unit_too_large_is_an_error(validator):
    assert not validator.commit_numeric_field("rounding_unit", "1000").report.is_valid


def test_adjustment_factor_zero_is_warned_but_kept(validator):
    commit = validator.commit_numeric_field("adjustment_factor", "0")
    assert commit.value == Decimal("0")
    assert len(commit.report.warnings) == 1
    assert commit.report.corrections == []


def test_blank_adjustment_factor_defaults_to_one(validator):
    commit = validator.commit_numeric_field("adjustment_factor", "")
    assert commit.value == Decimal("1.00")
    assert commit.report.corrections[0].after == Decimal("1.00")


def test_adjustment_factor_range(validator):
    assert not validator.commit_numeric_field("adjustment_factor", "10").report.is_valid
    assert validator.commit_numeric_field("adjustment_factor", "-9.99").report.is_valid


def test_manual_quantity_rules(validator):
    negative = validator.commit_numeric_field("manual_quantity", "-5")
    assert negative.report.is_valid and len(negative.report.warnings) == 1
    assert not validator.commit_numeric_field("manual_quantity", "10000000").report.is_valid
    assert validator.commit_numeric_field("manual_quantity", None).value == Decimal("0")


def test_dimension_rules(validator):
    assert validator.commit_numeric_field("width", None).value is None
    assert validator.commit_numeric_field("width", "0.01").report.is_valid
    assert not validator.commit_numeric_field("width", "0").report.is_valid


def test_non_numeric_text_is_refused(validator):
    with pytest.raises(InvalidNumericInputError):
        validator.commit_numeric_field("depth", "12m")


def test_required_fields_block_save_only(validator):
    fields = complete_item(name="  ")
    assert not validator.validate_item(fields, for_save=True).is_valid
    draft = validator.validate_item(fields, for_save=False)
    assert draft.is_valid
    assert [w.field for w in draft.warnings] == ["name"]


def test_area_volume_needs_a_dimension_on_save(validator):
    report = validator.validate_item(complete_item(calculation_method="AREA_VOLUME"))
    assert [e.field for e in report.errors] == ["calculation_params"]
    report = validator.validate_item(complete_item(calculation_method="AREA_VOLUME", height=Decimal("2")))
    assert report.is_valid


def test_pitch_needs_all_inputs_on_save(validator):
    report = validator.validate_item(complete_item(
        calculation_method="PITCH",
        range_length=Decimal("100"),
        pitch_length=Decimal("25"),
        edge2=Decimal("0.5"),
    ))
    assert [e.field for e in report.errors] == ["edge1"]


def test_raise_for_errors_carries_field_list(validator):
    report = validator.validate_item(complete_item(unit="", work_type="あ" * 9))
    with pytest.raises(FieldValidationError) as exc:
        report.raise_for_errors()
    assert {e["field"] for e in exc.value.errors} == {"work_type", "unit"}
    assert exc.value.status_code == 400


@pytest.mark.parametrize("field, raw, expected", [
    ("width", "1.006", Decimal("1.01")),
    ("adjustment_factor", "1.234", Decimal("1.23")),
    ("rounding_unit", "0.125", Decimal("0.13")),
    ("manual_quantity", "2.345", Decimal("2.35")),
])
def test_committed_values_are_kept_to_two_places(validator, field, raw, expected):
    commit = validator.commit_numeric_field(field, raw)
    assert commit.value == expected
    assert commit.report.corrections[0].after == expected


def test_two_place_values_need_no_correction(validator):
    assert validator.commit_numeric_field("width", "12.50").report.corrections == []


def test_computed_quantity_out_of_range_is_an_error(validator):
    report = validator.validate_item(complete_item(
        calculation_method="AREA_VOLUME",
        width=Decimal("9999999.99"),
        depth=Decimal("9999999.99"),
    ), for_save=False)
    assert [e.field for e in report.errors] == ["quantity"]


def test_computed_quantity_at_the_limit_is_accepted(validator):
    report = validator.validate_item(complete_item(
        calculation_method="AREA_VOLUME",
        width=Decimal("9999999.99"),
    ))
    assert report.is_valid
