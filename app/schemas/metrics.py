from __future__ import annotations

import math
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from app.models.metric import Quantity, Unit

UNIT_PATTERN = r"^[A-Za-z]{1,32}$"


class MetricCreate(BaseModel):
    value: float
    # Kept as a plain string so unknown symbols surface as an unknown-unit error.
    unit: str = Field(pattern=UNIT_PATTERN)
    date: datetime | None = None

    @field_validator("date")
    @classmethod
    def _date_to_utc(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("value")
    @classmethod
    def _finite_value(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Value must be a finite number.")
        return v


class MetricCreated(BaseModel):
    id: str
    owner_id: str
    value: float
    unit: Unit
    quantity: Quantity
    date: datetime


class BucketSummaryRead(BaseModel):
    bucket_start: datetime
    bucket_end: datetime
    count: int = Field(ge=1)
    average_value: float
    max: float
    min: float


class MetricsMeta(BaseModel):
    bucket_width_ms: float = Field(gt=0)
    target_unit: Unit
    quantity: Quantity
    total_records: int = Field(ge=0)
    returned_points: int = Field(ge=0)
    max_data_points: int = Field(ge=1)
    start: datetime
    end: datetime


class MetricsQueryResponse(BaseModel):
    buckets: list[BucketSummaryRead]
    meta: MetricsMeta


class UnitCatalog(BaseModel):
    quantity: Quantity
    base_unit: Unit
    units: list[Unit]
