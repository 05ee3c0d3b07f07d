from __future__ import annotations

from typing import Any


class MetricsError(Exception):
    kind = "metrics_error"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict[str, Any]:
        return {"error": self.kind, "field": self.field, "message": self.message}


class MetricsInputError(MetricsError):
    """Raised for caller mistakes; the HTTP layer maps these to 400."""

    kind = "invalid_input"


class UnknownUnitError(MetricsInputError):
    kind = "unknown_unit"

    def __init__(self, unit: object, *, field: str = "unit") -> None:
        super().__init__(f"Unknown unit '{unit}'.", field=field)
        self.unit = unit


class IncompatibleUnitsError(MetricsInputError):
    kind = "incompatible_units"

    def __init__(self, from_unit: object, to_unit: object, *, field: str = "unit") -> None:
        super().__init__(
            f"Cannot convert '{from_unit}' to '{to_unit}' (different quantities).",
            field=field,
        )
        self.from_unit = from_unit
        self.to_unit = to_unit


class UnitQuantityMismatchError(MetricsInputError):
    kind = "unit_quantity_mismatch"

    def __init__(self, unit: object, quantity: object, *, field: str = "unit") -> None:
        super().__init__(f"Unit '{unit}' is not a {quantity} unit.", field=field)
        self.unit = unit
        self.quantity = quantity


class InvalidRangeError(MetricsInputError):
    kind = "invalid_range"


class StorageError(MetricsError):
    kind = "storage_unavailable"


class AggregationSourceError(StorageError):
    kind = "aggregation_source_error"
