from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType

from app.core.errors import IncompatibleUnitsError, UnknownUnitError
from app.models.metric import Quantity, Unit

UNIT_QUANTITY: Mapping[Unit, Quantity] = MappingProxyType(
    {
        Unit.METER: Quantity.DISTANCE,
        Unit.CENTIMETER: Quantity.DISTANCE,
        Unit.INCH: Quantity.DISTANCE,
        Unit.FEET: Quantity.DISTANCE,
        Unit.YARD: Quantity.DISTANCE,
        Unit.CELSIUS: Quantity.TEMPERATURE,
        Unit.FAHRENHEIT: Quantity.TEMPERATURE,
        Unit.KELVIN: Quantity.TEMPERATURE,
    }
)

BASE_UNITS: Mapping[Quantity, Unit] = MappingProxyType(
    {Quantity.DISTANCE: Unit.METER, Quantity.TEMPERATURE: Unit.CELSIUS}
)

# Multiplicative factor to meters.
DISTANCE_TO_METER: Mapping[Unit, float] = MappingProxyType(
    {
        Unit.METER: 1.0,
        Unit.CENTIMETER: 0.01,
        Unit.INCH: 0.0254,
        Unit.FEET: 0.3048,
        Unit.YARD: 0.9144,
    }
)

TO_CELSIUS: Mapping[Unit, Callable[[float], float]] = MappingProxyType(
    {
        Unit.CELSIUS: lambda v: v,
        Unit.FAHRENHEIT: lambda v: (v - 32) * 5 / 9,
        Unit.KELVIN: lambda v: v - 273.15,
    }
)

FROM_CELSIUS: Mapping[Unit, Callable[[float], float]] = MappingProxyType(
    {
        Unit.CELSIUS: lambda v: v,
        Unit.FAHRENHEIT: lambda v: v * 9 / 5 + 32,
        Unit.KELVIN: lambda v: v + 273.15,
    }
)


def parse_unit(symbol: Unit | str, *, field: str = "unit") -> Unit:
    if isinstance(symbol, Unit):
        return symbol
    try:
        return Unit(symbol)
    except ValueError as e:
        raise UnknownUnitError(symbol, field=field) from e


def resolve_quantity(symbol: Unit | str, *, field: str = "unit") -> Quantity:
    return UNIT_QUANTITY[parse_unit(symbol, field=field)]


def units_for(quantity: Quantity) -> list[Unit]:
    return [unit for unit, q in UNIT_QUANTITY.items() if q is quantity]


def convert_distance(value: float, from_unit: Unit, to_unit: Unit) -> float:
    if from_unit == to_unit:
        return value
    return value * DISTANCE_TO_METER[from_unit] / DISTANCE_TO_METER[to_unit]


def convert_temperature(value: float, from_unit: Unit, to_unit: Unit) -> float:
    if from_unit == to_unit:
        return value
    return FROM_CELSIUS[to_unit](TO_CELSIUS[from_unit](value))


_CONVERTERS: Mapping[Quantity, Callable[[float, Unit, Unit], float]] = MappingProxyType(
    {
        Quantity.DISTANCE: convert_distance,
        Quantity.TEMPERATURE: convert_temperature,
    }
)


def convert(value: float, from_unit: Unit | str, to_unit: Unit | str) -> float:
    """Convert ``value`` between two units of the same quantity.

    Raises :class:`IncompatibleUnitsError` when the units measure different
    quantities. No rounding is applied.
    """
    src = parse_unit(from_unit)
    dst = parse_unit(to_unit)
    if src == dst:
        return value
    quantity = UNIT_QUANTITY[src]
    if UNIT_QUANTITY[dst] is not quantity:
        raise IncompatibleUnitsError(src.value, dst.value)
    return _CONVERTERS[quantity](value, src, dst)


def convert_sum(total: float, count: int, from_unit: Unit, to_unit: Unit) -> float:
    """Convert the sum of ``count`` readings as if each reading were converted.

    Temperature conversions are affine, so converting the raw sum would add the
    offset once instead of ``count`` times. Converting the mean and scaling it
    back up is exact for both affine and linear conversions.
    """
    if from_unit == to_unit:
        return total
    if count <= 0:
        return 0.0
    return convert(total / count, from_unit, to_unit) * count
