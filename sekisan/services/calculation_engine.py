"""
Quantity calculator.

A pure function over a tagged calculation input:

    StandardInput   -> the manually entered quantity
    AreaVolumeInput -> product of the entered dimensions
    PitchInput      -> piece count floor((range - edge1 - edge2) / pitch) + 1

Non-standard results are multiplied by the adjustment factor and then rounded
UP to a multiple of the rounding unit. Everything is Decimal.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR
from typing import Optional, Union

from sekisan.utils.number_format import TWO_PLACES, to_two_places

DEFAULT_ADJUSTMENT_FACTOR = Decimal("1.00")
DEFAULT_ROUNDING_UNIT = Decimal("0.01")
ZERO = Decimal("0")


# =========
# Calculation inputs (one variant per calculation method)
# =========
@dataclass(frozen=True)
class StandardInput:
    quantity: Optional[Decimal] = None


@dataclass(frozen=True)
class AreaVolumeInput:
    width: Optional[Decimal] = None
    depth: Optional[Decimal] = None
    height: Optional[Decimal] = None
    weight: Optional[Decimal] = None

    def entered_values(self) -> list:
        return [v for v in (self.width, self.depth, self.height, self.weight) if v is not None]


@dataclass(frozen=True)
class PitchInput:
    range_length: Optional[Decimal] = None
    edge1: Optional[Decimal] = None
    edge2: Optional[Decimal] = None
    pitch_length: Optional[Decimal] = None
    length: Optional[Decimal] = None
    weight: Optional[Decimal] = None

    def is_computable(self) -> bool:
        return (
            self.range_length is not None
            and self.pitch_length is not None
            and self.pitch_length > ZERO
        )


CalculationInput = Union[StandardInput, AreaVolumeInput, PitchInput]


@dataclass(frozen=True)
class CalculationResult:
    raw_value: Decimal       # before adjustment factor / rounding
    adjusted_value: Decimal  # after adjustment factor
    final_value: Decimal     # persisted quantity
    formula: str


def _fmt(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def calculate_area_volume(params: AreaVolumeInput) -> Decimal:
    '''
    Multiply the dimensions that were entered; blank ones are left out of the
    product. Nothing entered -> 0.
    '''
    values = params.entered_values()
    if not values:
        return ZERO
    result = Decimal("1")
    for v in values:
        result *= v
    return result


def pitch_count(params: PitchInput) -> Decimal:
    '''
    Number of pieces laid at pitch_length over the effective range.

    effective = range_length - edge1 - edge2 (missing edges are 0)
    count = floor(effective / pitch_length) + 1, at least 1.
    Returns 0 when range_length / pitch_length are missing or pitch_length <= 0.
    '''
    if not params.is_computable():
        return ZERO
    effective = params.range_length - (params.edge1 or ZERO) - (params.edge2 or ZERO)
    if effective <= ZERO:
        return Decimal("1")
    return (effective / params.pitch_length).to_integral_value(rounding=ROUND_FLOOR) + 1


def calculate_pitch(params: PitchInput) -> Decimal:
    count = pitch_count(params)
    if count == ZERO:
        return ZERO
    result = count
    if params.length is not None:
        result *= params.length
    if params.weight is not None:
        result *= params.weight
    return result


def apply_adjustment_factor(value: Decimal, factor: Optional[Decimal]) -> Decimal:
    if factor is None:
        factor = DEFAULT_ADJUSTMENT_FACTOR
    return value * factor


def effective_rounding_unit(unit: Optional[Decimal]) -> Decimal:
    if unit is None or unit <= ZERO:
        return DEFAULT_ROUNDING_UNIT
    return unit


def apply_rounding(value: Decimal, unit: Optional[Decimal]) -> Decimal:
    '''
    Round UP to the nearest multiple of unit (53 with unit 10 -> 60, never 50).
    A missing or non-positive unit falls back to 0.01.
    '''
    unit = effective_rounding_unit(unit)
    steps = (value / unit).to_integral_value(rounding=ROUND_CEILING)
    return (steps * unit).quantize(TWO_PLACES, rounding=ROUND_CEILING)


def area_volume_formula(params: AreaVolumeInput) -> str:
    values = params.entered_values()
    if not values:
        return "0"
    return f"{' x '.join(_fmt(v) for v in values)} = {_fmt(calculate_area_volume(params))}"


def pitch_formula(params: PitchInput) -> str:
    formula = (
        f"floor(({_fmt(params.range_length or ZERO)} - {_fmt(params.edge1 or ZERO)} - "
        f"{_fmt(params.edge2 or ZERO)}) / {_fmt(params.pitch_length or ZERO)}) + 1 = "
        f"{_fmt(pitch_count(params))}"
    )
    if params.length is not None:
        formula += f" x {_fmt(params.length)}"
    if params.weight is not None:
        formula += f" x {_fmt(params.weight)}"
    return f"{formula} = {_fmt(calculate_pitch(params))}"


def calculate(
    calc_input: CalculationInput,
    adjustment_factor: Optional[Decimal] = DEFAULT_ADJUSTMENT_FACTOR,
    rounding_unit: Optional[Decimal] = DEFAULT_ROUNDING_UNIT,
) -> CalculationResult:
    """
    Run the calculation for one item.

    STANDARD quantities are taken as typed (2 decimals); the adjustment factor
    and rounding unit do not apply to them.
    """
    if isinstance(calc_input, StandardInput):
        raw = calc_input.quantity if calc_input.quantity is not None else ZERO
        final = to_two_places(raw)
        return CalculationResult(raw_value=raw, adjusted_value=raw, final_value=final, formula=_fmt(raw))

    if isinstance(calc_input, AreaVolumeInput):
        raw = calculate_area_volume(calc_input)
        formula = area_volume_formula(calc_input)
    elif isinstance(calc_input, PitchInput):
        raw = calculate_pitch(calc_input)
        formula = pitch_formula(calc_input)
    else:
        raise TypeError(f"Unknown calculation input: {type(calc_input).__name__}")

    adjusted = apply_adjustment_factor(raw, adjustment_factor)
    final = apply_rounding(adjusted, rounding_unit)
    return CalculationResult(raw_value=raw, adjusted_value=adjusted, final_value=final, formula=formula)


def compute_quantity(
    calc_input: CalculationInput,
    adjustment_factor: Optional[Decimal] = DEFAULT_ADJUSTMENT_FACTOR,
    rounding_unit: Optional[Decimal] = DEFAULT_ROUNDING_UNIT,
) -> Decimal:
    return calculate(calc_input, adjustment_factor, rounding_unit).final_value
