"""Numeric input parsing and 2-decimal display formatting for quantity fields."""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

from sekisan.exceptions import InvalidNumericInputError

# optional sign, digits, at most one decimal point (".5" and "5." are accepted)
NUMERIC_LITERAL_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")

TWO_PLACES = Decimal("0.01")

NumberLike = Union[Decimal, int, float, str]


def parse_decimal_input(raw: NumberLike, field: Optional[str] = None) -> Decimal:
    """
    Parse user input into a Decimal.

    Only numeric literals are accepted. Anything else raises
    InvalidNumericInputError, so the caller leaves the field unchanged.

    Raises:
        InvalidNumericInputError: if the value is blank or not a numeric literal.
    """
    if isinstance(raw, bool):
        raise InvalidNumericInputError(raw, field)
    if isinstance(raw, Decimal):
        if not raw.is_finite():
            raise InvalidNumericInputError(raw, field)
        return raw
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        # go through str() so 0.1 stays 0.1
        raw = str(raw)

    if raw is None:
        raise InvalidNumericInputError(raw, field)

    cleaned = str(raw).strip()
    if not NUMERIC_LITERAL_PATTERN.match(cleaned):
        raise InvalidNumericInputError(raw, field)

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise InvalidNumericInputError(raw, field)


def parse_optional_decimal_input(raw: Optional[NumberLike], field: Optional[str] = None) -> Optional[Decimal]:
    """Same as parse_decimal_input, but None / blank means "not entered"."""
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    return parse_decimal_input(raw, field)


def to_two_places(value: NumberLike) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_for_display(value: Optional[NumberLike]) -> str:
    """
    Render a value for a numeric cell.

    None / blank -> "" (blank dimension fields stay blank),
    otherwise a fixed 2-decimal string: 100 -> "100.00", -10 -> "-10.00".
    """
    if value is None:
        return ""
    if isinstance(value, str):
        if not value.strip():
            return ""
        value = parse_decimal_input(value)
    return f"{to_two_places(value):.2f}"


def is_within_range(value: NumberLike, min_value: NumberLike, max_value: NumberLike) -> bool:
    """Inclusive range check on Decimal values."""
    v = Decimal(value) if not isinstance(value, float) else Decimal(str(value))
    lo = Decimal(str(min_value))
    hi = Decimal(str(max_value))
    return lo <= v <= hi
