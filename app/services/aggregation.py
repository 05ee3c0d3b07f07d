from __future__ import annotations

import logging
from collections.abc import Iterable

from app.core.errors import AggregationSourceError, UnitQuantityMismatchError
from app.models.metric import (
    AggregationMeta,
    AggregationTable,
    BucketPlan,
    BucketSummary,
    Quantity,
    Unit,
    UnitBucketStat,
)
from app.repositories.base import MetricRepository
from app.services.units import UNIT_QUANTITY, convert, convert_sum

logger = logging.getLogger(__name__)


def ensure_unit_matches(unit: Unit, quantity: Quantity) -> None:
    if UNIT_QUANTITY[unit] is not quantity:
        raise UnitQuantityMismatchError(unit.value, quantity.value)


def build_table(stats: Iterable[UnitBucketStat], plan: BucketPlan) -> AggregationTable:
    table: AggregationTable = {}
    for stat in stats:
        if stat.count <= 0:
            continue
        if not 0 <= stat.bucket_index < plan.bucket_count:
            raise AggregationSourceError(
                f"Bucket index {stat.bucket_index} outside of the "
                f"{plan.bucket_count} planned buckets."
            )
        units = table.setdefault(stat.bucket_index, {})
        existing = units.get(stat.unit)
        units[stat.unit] = stat if existing is None else existing.combine(stat)
    return table


class StatsAggregator:
    def __init__(self, source: MetricRepository) -> None:
        self._source = source

    def aggregate(
        self,
        *,
        owner_id: str,
        quantity: Quantity,
        target_unit: Unit,
        plan: BucketPlan,
    ) -> AggregationTable:
        ensure_unit_matches(target_unit, quantity)
        try:
            stats = self._source.group_by_bucket_and_unit(
                owner_id=owner_id,
                plan=plan,
                quantity=quantity,
                start=plan.start,
                end=plan.end,
            )
        except AggregationSourceError:
            raise
        except Exception as e:  # noqa: BLE001 - any storage failure fails the query
            logger.warning(
                "Grouping query failed",
                extra={"owner_id": owner_id, "quantity": quantity.value, "error": repr(e)},
            )
            raise AggregationSourceError("Aggregation source unavailable") from e
        return build_table(stats, plan)


class SummaryMerger:
    def merge(
        self,
        table: AggregationTable,
        *,
        plan: BucketPlan,
        target_unit: Unit,
        quantity: Quantity,
        max_data_points: int,
    ) -> tuple[list[BucketSummary], AggregationMeta]:
        """Fold every bucket's per-unit stats into one summary in ``target_unit``.

        Averages are recomputed from the converted sums and counts, so a bucket
        mixing units (or split across several stats) never averages averages.
        Buckets without records are left out.
        """
        ensure_unit_matches(target_unit, quantity)

        summaries: list[BucketSummary] = []
        for index in sorted(table):
            total_sum = 0.0
            total_count = 0
            bucket_max: float | None = None
            bucket_min: float | None = None
            for unit, stat in table[index].items():
                if stat.count <= 0:
                    continue
                total_sum += convert_sum(stat.sum, stat.count, unit, target_unit)
                total_count += stat.count
                converted_max = convert(stat.max, unit, target_unit)
                converted_min = convert(stat.min, unit, target_unit)
                bucket_max = converted_max if bucket_max is None else max(bucket_max, converted_max)
                bucket_min = converted_min if bucket_min is None else min(bucket_min, converted_min)

            if total_count == 0 or bucket_max is None or bucket_min is None:
                continue
            summaries.append(
                BucketSummary(
                    bucket_start=plan.bucket_start(index),
                    bucket_end=plan.bucket_end(index),
                    count=total_count,
                    average_value=total_sum / total_count,
                    max=bucket_max,
                    min=bucket_min,
                )
            )

        meta = AggregationMeta(
            bucket_width_ms=plan.bucket_width_ms,
            target_unit=target_unit,
            quantity=quantity,
            total_records=sum(s.count for s in summaries),
            returned_points=len(summaries),
            max_data_points=max_data_points,
            start=plan.start,
            end=plan.end,
        )
        return summaries, meta
