"""Which fields each calculation method shows, and how an item's fields become a calculation input."""
from collections.abc import Mapping
from typing import Any, Tuple, Union

from sekisan.db.enums import CalculationMethod
from sekisan.exceptions import FieldValidationError
from sekisan.services.calculation_engine import (
    AreaVolumeInput,
    CalculationInput,
    PitchInput,
    StandardInput,
)

AREA_VOLUME_FIELDS: Tuple[str, ...] = ("width", "depth", "height", "weight")
PITCH_FIELDS: Tuple[str, ...] = ("range_length", "edge1", "edge2", "pitch_length", "length", "weight")
FACTOR_FIELDS: Tuple[str, ...] = ("adjustment_factor", "rounding_unit")

# every dimension column in column order, without duplicates
DIMENSION_FIELDS: Tuple[str, ...] = tuple(dict.fromkeys(AREA_VOLUME_FIELDS + PITCH_FIELDS))

_VISIBLE = {
    CalculationMethod.STANDARD: ("manual_quantity",),
    CalculationMethod.AREA_VOLUME: AREA_VOLUME_FIELDS + FACTOR_FIELDS,
    CalculationMethod.PITCH: PITCH_FIELDS + FACTOR_FIELDS,
}


def coerce_method(value: Union[str, CalculationMethod]) -> CalculationMethod:
    if isinstance(value, CalculationMethod):
        return value
    try:
        return CalculationMethod(str(value).strip().upper())
    except ValueError:
        raise FieldValidationError([{
            "field": "calculation_method",
            "message": f"Unknown calculation method: {value}",
            "value": value,
        }])


def visible_fields(method: Union[str, CalculationMethod]) -> Tuple[str, ...]:
    '''
    Calculation fields shown in the primary row for a method.

    STANDARD hides the adjustment factor and rounding unit; AREA_VOLUME and
    PITCH show their own dimension columns plus both factor fields.
    '''
    return _VISIBLE[coerce_method(method)]


def editable_fields(method: Union[str, CalculationMethod]) -> frozenset:
    return frozenset(visible_fields(method))


def inert_fields(method: Union[str, CalculationMethod]) -> frozenset:
    """Dimension fields kept on the item but ignored by the active method."""
    return frozenset(DIMENSION_FIELDS) - editable_fields(method)


def _getter(fields: Any):
    if isinstance(fields, Mapping):
        return fields.get
    return lambda name: getattr(fields, name, None)


def build_calculation_input(method: Union[str, CalculationMethod], fields: Any) -> CalculationInput:
    '''
    Build the calculation input for the active method only.

    :param method: active calculation method
    :param fields: mapping or object (e.g. a QuantityItem) holding the field values
    :return: StandardInput | AreaVolumeInput | PitchInput
    '''
    method = coerce_method(method)
    get = _getter(fields)

    if method == CalculationMethod.STANDARD:
        return StandardInput(quantity=get("manual_quantity"))
    if method == CalculationMethod.AREA_VOLUME:
        return AreaVolumeInput(**{name: get(name) for name in AREA_VOLUME_FIELDS})
    return PitchInput(**{name: get(name) for name in PITCH_FIELDS})
