from __future__ import annotations

from datetime import datetime
from typing import Protocol

from app.models.metric import BucketPlan, MetricRecord, Quantity, UnitBucketStat


class MetricRepository(Protocol):
    def ping(self) -> None: ...

    def write_metric(self, record: MetricRecord) -> None: ...

    def group_by_bucket_and_unit(
        self,
        *,
        owner_id: str,
        plan: BucketPlan,
        quantity: Quantity | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[UnitBucketStat]:
        """Return count/sum/min/max of ``value`` per non-empty (bucket, unit) pair.

        Each matching record falls into exactly one bucket of ``plan``. ``start``
        and ``end`` default to the plan's own range.
        """
        ...
