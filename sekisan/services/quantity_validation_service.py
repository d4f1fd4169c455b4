# sekisan/services/quantity_validation_service.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Mapping

from sekisan.db.enums import CalculationMethod
from sekisan.exceptions import FieldValidationError
from sekisan.services.calculation_engine import DEFAULT_ADJUSTMENT_FACTOR, DEFAULT_ROUNDING_UNIT, calculate
from sekisan.services.calculation_method import (
    AREA_VOLUME_FIELDS,
    DIMENSION_FIELDS,
    build_calculation_input,
    coerce_method,
)
from sekisan.utils.number_format import is_within_range, parse_optional_decimal_input, to_two_places


@dataclass
class ValidationIssue:
    field: str
    message: str
    value: Any = None


@dataclass
class FieldCorrection:
    field: str
    before: Any
    after: Any
    message: str


@dataclass
class ValidationReport:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    corrections: List[FieldCorrection] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationReport") -> "ValidationReport":
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.corrections.extend(other.corrections)
        return self

    def raise_for_errors(self) -> None:
        if self.errors:
            raise FieldValidationError([
                {"field": e.field, "message": e.message, "value": _plain(e.value)}
                for e in self.errors
            ])


@dataclass
class FieldCommit:
    """Result of committing one numeric field (the "blur" of the editor)."""
    field: str
    value: Optional[Decimal]
    report: ValidationReport


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    return value


# Text limits in half-width units (one full-width char counts 2)
TEXT_FIELD_LIMITS: Dict[str, int] = {
    "major_category": 50,
    "middle_category": 50,
    "minor_category": 50,
    "custom_category": 50,
    "work_type": 16,
    "name": 50,
    "specification": 50,
    "unit": 6,
    "remarks": 50,
}

FIELD_LABELS: Dict[str, str] = {
    "major_category": "大項目",
    "middle_category": "中項目",
    "minor_category": "小項目",
    "custom_category": "任意分類",
    "work_type": "工種",
    "name": "名称",
    "specification": "規格",
    "unit": "単位",
    "remarks": "備考",
    "manual_quantity": "数量",
    "quantity": "数量",
    "adjustment_factor": "調整係数",
    "rounding_unit": "丸め設定",
    "width": "幅(W)",
    "depth": "奥行き(D)",
    "height": "高さ(H)",
    "weight": "重量",
    "range_length": "範囲長",
    "edge1": "端長1",
    "edge2": "端長2",
    "pitch_length": "ピッチ長",
    "length": "長さ",
}

REQUIRED_TEXT_FIELDS = ("major_category", "work_type", "name", "unit")
PITCH_REQUIRED_FIELDS = ("range_length", "edge1", "edge2", "pitch_length")

QUANTITY_MIN = Decimal("-999999.99")
QUANTITY_MAX = Decimal("9999999.99")
DIMENSION_MIN = Decimal("0.01")
DIMENSION_MAX = Decimal("9999999.99")
ADJUSTMENT_FACTOR_MIN = Decimal("-9.99")
ADJUSTMENT_FACTOR_MAX = Decimal("9.99")
ROUNDING_UNIT_MAX = Decimal("999.99")

NUMERIC_FIELDS = ("manual_quantity", "adjustment_factor", "rounding_unit") + DIMENSION_FIELDS


def calculate_string_width(value: str) -> int:
    '''
    Display width of a string.
    ASCII (U+0000-U+007F) and half-width katakana (U+FF61-U+FF9F) count 1,
    everything else counts 2.
    '''
    width = 0
    for ch in value:
        cp = ord(ch)
        if cp <= 0x7F or 0xFF61 <= cp <= 0xFF9F:
            width += 1
        else:
            width += 2
    return width


class QuantityValidationService:
    """
    Field-level rules for quantity items.

    - text width limits and required fields
    - numeric ranges per field
    - per-method completeness (AREA_VOLUME / PITCH)
    - soft warnings and hard corrections applied when a numeric field is committed
    """

    def validate_text_field(self, field_name: str, value: Optional[str]) -> Optional[ValidationIssue]:
        if value is None:
            return None
        limit = TEXT_FIELD_LIMITS[field_name]
        if calculate_string_width(value) > limit:
            label = FIELD_LABELS[field_name]
            return ValidationIssue(
                field=field_name,
                message=f"{label}は全角{limit // 2}文字/半角{limit}文字以内で入力してください",
                value=value,
            )
        return None

    def commit_numeric_field(self, field_name: str, raw: Any) -> FieldCommit:
        """
        Parse and check one numeric field as the editor does on blur.

        - non-numeric input raises InvalidNumericInputError (edit refused)
        - manual_quantity: blank -> 0, negative -> warning, outside range -> error
        - adjustment_factor: blank -> 1.00, <= 0 -> warning (kept), outside range -> error
        - rounding_unit: blank or <= 0 -> warning and reset to 0.01, too large -> error
        - dimensions: blank stays blank, outside 0.01..9999999.99 -> error
        """
        if field_name not in NUMERIC_FIELDS:
            raise KeyError(field_name)

        report = ValidationReport()
        label = FIELD_LABELS[field_name]
        value = parse_optional_decimal_input(raw, field_name)
        if value is not None and value != to_two_places(value):
            # columns hold 2 decimals; the quantity is computed from the stored value
            report.corrections.append(FieldCorrection(
                field_name, value, to_two_places(value), f"{label}を小数第2位に丸めました"))
            value = to_two_places(value)

        if field_name == "manual_quantity":
            if value is None:
                report.corrections.append(FieldCorrection(field_name, raw, Decimal("0"), f"{label}を0に設定しました"))
                value = Decimal("0")
            if not is_within_range(value, QUANTITY_MIN, QUANTITY_MAX):
                report.errors.append(ValidationIssue(
                    field_name, f"{label}は{QUANTITY_MIN}から{QUANTITY_MAX}の範囲で入力してください", value))
            elif value < 0:
                report.warnings.append(ValidationIssue(
                    field_name, f"{label}に負の値が入力されています。確認してください。", value))

        elif field_name == "adjustment_factor":
            if value is None:
                report.corrections.append(FieldCorrection(
                    field_name, raw, DEFAULT_ADJUSTMENT_FACTOR, f"{label}を1.00に設定しました"))
                value = DEFAULT_ADJUSTMENT_FACTOR
            if not is_within_range(value, ADJUSTMENT_FACTOR_MIN, ADJUSTMENT_FACTOR_MAX):
                report.errors.append(ValidationIssue(
                    field_name,
                    f"{label}は{ADJUSTMENT_FACTOR_MIN}から{ADJUSTMENT_FACTOR_MAX}の範囲で入力してください",
                    value))
            elif value <= 0:
                report.warnings.append(ValidationIssue(
                    field_name, f"{label}に0以下の値が入力されています。確認してください。", value))

        elif field_name == "rounding_unit":
            if value is None or value <= 0:
                if value is not None:
                    report.warnings.append(ValidationIssue(
                        field_name, f"{label}は0より大きい値を入力してください", value))
                report.corrections.append(FieldCorrection(
                    field_name, value, DEFAULT_ROUNDING_UNIT, f"{label}を0.01に戻しました"))
                value = DEFAULT_ROUNDING_UNIT
            elif value > ROUNDING_UNIT_MAX:
                report.errors.append(ValidationIssue(
                    field_name, f"{label}は0.01から{ROUNDING_UNIT_MAX}の範囲で入力してください", value))

        else:
            # dimension fields
            if value is not None and not is_within_range(value, DIMENSION_MIN, DIMENSION_MAX):
                report.errors.append(ValidationIssue(
                    field_name, f"{label}は{DIMENSION_MIN}から{DIMENSION_MAX}の範囲で入力してください", value))

        return FieldCommit(field=field_name, value=value, report=report)

    def validate_calculation_inputs(
        self,
        method,
        fields: Mapping[str, Any],
        *,
        for_save: bool = True,
    ) -> ValidationReport:
        '''
        Completeness of the inputs for the active method.
        On save a missing input is an error; while editing it is a warning
        (the quantity simply stays 0).
        '''
        method = coerce_method(method)
        report = ValidationReport()
        issues: List[ValidationIssue] = []

        if method == CalculationMethod.AREA_VOLUME:
            if all(fields.get(name) is None for name in AREA_VOLUME_FIELDS):
                issues.append(ValidationIssue(
                    "calculation_params", "面積・体積モードでは最低1項目を入力してください"))
        elif method == CalculationMethod.PITCH:
            for name in PITCH_REQUIRED_FIELDS:
                if fields.get(name) is None:
                    issues.append(ValidationIssue(name, f"{FIELD_LABELS[name]}を入力してください"))
            pitch = fields.get("pitch_length")
            if pitch is not None and pitch <= 0:
                report.errors.append(ValidationIssue(
                    "pitch_length", "ピッチ長は0より大きい値を入力してください", pitch))

        if for_save:
            report.errors.extend(issues)
        else:
            report.warnings.extend(issues)
        return report

    def validate_item(self, fields: Mapping[str, Any], *, for_save: bool = True) -> ValidationReport:
        """
        Re-check every field of an item (server side, before persisting).

        :param fields: item field values keyed by column name (Decimal for numbers)
        :param for_save: required-field and completeness problems are errors when True,
                         warnings otherwise
        """
        report = ValidationReport()

        # 1. text fields
        for name in TEXT_FIELD_LIMITS:
            issue = self.validate_text_field(name, fields.get(name))
            if issue:
                report.errors.append(issue)

        for name in REQUIRED_TEXT_FIELDS:
            value = fields.get(name)
            if value is None or not str(value).strip():
                issue = ValidationIssue(name, f"{FIELD_LABELS[name]}は必須です")
                (report.errors if for_save else report.warnings).append(issue)

        # 2. numeric ranges
        for name in NUMERIC_FIELDS:
            if name not in fields:
                continue
            value = fields.get(name)
            if value is None and name in DIMENSION_FIELDS:
                continue
            commit = self.commit_numeric_field(name, value)
            report.errors.extend(commit.report.errors)
            report.warnings.extend(commit.report.warnings)

        # 3. per-method inputs
        method = fields.get("calculation_method") or CalculationMethod.STANDARD
        report.merge(self.validate_calculation_inputs(method, fields, for_save=for_save))

        # 4. derived quantity (manual_quantity is range-checked above)
        if coerce_method(method) != CalculationMethod.STANDARD:
            issue = self.validate_computed_quantity(method, fields)
            if issue:
                report.errors.append(issue)
        return report

    def validate_computed_quantity(self, method, fields: Any) -> Optional[ValidationIssue]:
        '''
        Range check of the quantity the item would be recalculated to.

        :param fields: mapping or QuantityItem holding the candidate values
        '''
        get = fields.get if isinstance(fields, Mapping) else (lambda name: getattr(fields, name, None))
        factor = get("adjustment_factor")
        rounding_unit = get("rounding_unit")
        quantity = calculate(
            build_calculation_input(method, fields),
            DEFAULT_ADJUSTMENT_FACTOR if factor is None else factor,
            DEFAULT_ROUNDING_UNIT if rounding_unit is None else rounding_unit,
        ).final_value
        if is_within_range(quantity, QUANTITY_MIN, QUANTITY_MAX):
            return None
        return ValidationIssue(
            "quantity",
            f"計算結果の数量が{QUANTITY_MIN}から{QUANTITY_MAX}の範囲を超えています",
            quantity,
        )

    def validate_batch(self, items: List[Mapping[str, Any]], *, for_save: bool = True) -> List[ValidationReport]:
        return [self.validate_item(i, for_save=for_save) for i in items]
