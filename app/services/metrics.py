from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from app.core.errors import InvalidRangeError, StorageError
from app.models.metric import MetricRecord, MetricsQueryResult, Quantity, Unit
from app.repositories.base import MetricRepository
from app.services.aggregation import StatsAggregator, SummaryMerger, ensure_unit_matches
from app.services.buckets import plan_buckets, to_utc
from app.services.units import parse_unit, resolve_quantity, units_for

logger = logging.getLogger(__name__)

DEFAULT_MAX_DATA_POINTS = 100
MAX_DATA_POINTS_CEILING = 1000


class MetricService:
    def __init__(
        self,
        repo: MetricRepository,
        *,
        default_max_points: int = DEFAULT_MAX_DATA_POINTS,
        max_points_ceiling: int = MAX_DATA_POINTS_CEILING,
    ) -> None:
        self._repo = repo
        self._default_max_points = default_max_points
        self._max_points_ceiling = max_points_ceiling
        self._aggregator = StatsAggregator(repo)
        self._merger = SummaryMerger()

    def ingest(
        self,
        *,
        owner_id: str,
        value: float,
        unit: Unit | str,
        timestamp: datetime | None = None,
    ) -> MetricRecord:
        resolved = parse_unit(unit)
        record = MetricRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            quantity=resolve_quantity(resolved),
            unit=resolved,
            value=float(value),
            timestamp=to_utc(timestamp) if timestamp else datetime.now(tz=timezone.utc),
        )
        try:
            self._repo.write_metric(record)
        except Exception as e:  # noqa: BLE001 - normalize storage failures
            logger.warning(
                "Metric write failed",
                extra={"owner_id": owner_id, "unit": resolved.value, "error": repr(e)},
            )
            raise StorageError("Metric storage unavailable") from e
        logger.debug(
            "Metric stored",
            extra={"owner_id": owner_id, "quantity": record.quantity.value, "unit": resolved.value},
        )
        return record

    def resolve_max_points(self, max_points: int | None) -> int:
        if max_points is None:
            return min(self._default_max_points, self._max_points_ceiling)
        if max_points < 1:
            raise InvalidRangeError("'max_points' must be >= 1", field="max_points")
        return min(max_points, self._max_points_ceiling)

    def query(
        self,
        *,
        owner_id: str,
        quantity: Quantity,
        target_unit: Unit | str,
        start: datetime,
        end: datetime,
        max_points: int | None = None,
    ) -> MetricsQueryResult:
        unit = parse_unit(target_unit)
        ensure_unit_matches(unit, quantity)
        cap = self.resolve_max_points(max_points)
        plan = plan_buckets(start, end, cap)

        table = self._aggregator.aggregate(
            owner_id=owner_id, quantity=quantity, target_unit=unit, plan=plan
        )
        buckets, meta = self._merger.merge(
            table,
            plan=plan,
            target_unit=unit,
            quantity=quantity,
            max_data_points=plan.bucket_count,
        )
        logger.info(
            "Metrics query served",
            extra={
                "owner_id": owner_id,
                "quantity": quantity.value,
                "target_unit": unit.value,
                "bucket_count": plan.bucket_count,
                "returned_points": meta.returned_points,
                "total_records": meta.total_records,
            },
        )
        return MetricsQueryResult(buckets=buckets, meta=meta)

    def units(self) -> dict[Quantity, list[Unit]]:
        return {quantity: units_for(quantity) for quantity in Quantity}
