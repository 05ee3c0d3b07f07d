from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Quantity(str, Enum):
    DISTANCE = "DISTANCE"
    TEMPERATURE = "TEMPERATURE"


class Unit(str, Enum):
    METER = "METER"
    CENTIMETER = "CENTIMETER"
    INCH = "INCH"
    FEET = "FEET"
    YARD = "YARD"

    CELSIUS = "CELSIUS"
    FAHRENHEIT = "FAHRENHEIT"
    KELVIN = "KELVIN"


@dataclass(frozen=True)
class MetricRecord:
    id: str
    owner_id: str
    quantity: Quantity
    unit: Unit
    value: float
    timestamp: datetime


@dataclass(frozen=True)
class BucketPlan:
    """Bucket boundaries ``b0 < b1 < ... < bN`` over a query range.

    Bucket ``i`` covers ``[b_i, b_{i+1})``; the last bucket is closed on both ends.
    """

    start: datetime
    end: datetime
    boundaries: tuple[datetime, ...]
    bucket_width_ms: float

    @property
    def bucket_count(self) -> int:
        return max(len(self.boundaries) - 1, 0)

    def bucket_start(self, index: int) -> datetime:
        return self.boundaries[index]

    def bucket_end(self, index: int) -> datetime:
        return self.boundaries[index + 1]

    def locate(self, ts: datetime) -> int | None:
        if self.bucket_count == 0:
            return None
        if ts < self.boundaries[0] or ts > self.boundaries[-1]:
            return None
        return min(bisect_right(self.boundaries, ts) - 1, self.bucket_count - 1)


@dataclass(frozen=True)
class UnitBucketStat:
    bucket_index: int
    unit: Unit
    count: int
    sum: float
    min: float
    max: float

    def combine(self, other: UnitBucketStat) -> UnitBucketStat:
        if other.bucket_index != self.bucket_index or other.unit != self.unit:
            raise ValueError("Only stats of the same bucket and unit can be combined.")
        return UnitBucketStat(
            bucket_index=self.bucket_index,
            unit=self.unit,
            count=self.count + other.count,
            sum=self.sum + other.sum,
            min=min(self.min, other.min),
            max=max(self.max, other.max),
        )


AggregationTable = dict[int, dict[Unit, UnitBucketStat]]


@dataclass(frozen=True)
class BucketSummary:
    bucket_start: datetime
    bucket_end: datetime
    count: int
    average_value: float
    max: float
    min: float


@dataclass(frozen=True)
class AggregationMeta:
    bucket_width_ms: float
    target_unit: Unit
    quantity: Quantity
    total_records: int
    returned_points: int
    max_data_points: int
    start: datetime
    end: datetime


@dataclass(frozen=True)
class MetricsQueryResult:
    buckets: list[BucketSummary]
    meta: AggregationMeta
