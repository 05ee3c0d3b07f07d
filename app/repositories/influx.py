from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from app.core.errors import AggregationSourceError
from app.models.metric import BucketPlan, MetricRecord, Quantity, Unit, UnitBucketStat
from app.repositories.flux import flux_float, flux_str, flux_time, to_epoch_ns


def boundaries_ns(plan: BucketPlan) -> list[int]:
    return [to_epoch_ns(b) for b in plan.boundaries]


class InfluxMetricRepository:
    def __init__(
        self,
        *,
        client: InfluxDBClient,
        org: str,
        bucket: str,
        measurement: str,
        timeout_ms: int,
    ) -> None:
        self._client = client
        self._org = org
        self._bucket = bucket
        self._measurement = measurement
        self._timeout_ms = timeout_ms

    def ping(self) -> None:
        self._client.ping()

    def write_metric(self, record: MetricRecord) -> None:
        timestamp = record.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        point = (
            Point(self._measurement)
            .tag("owner_id", record.owner_id)
            .tag("quantity", record.quantity.value)
            .tag("unit", record.unit.value)
            .field("value", float(record.value))
            .field("record_id", record.id)
            .time(timestamp, WritePrecision.NS)
        )
        write_api = self._client.write_api(write_options=SYNCHRONOUS)
        write_api.write(bucket=self._bucket, org=self._org, record=point)

    def build_grouping_query(
        self,
        *,
        owner_id: str,
        plan: BucketPlan,
        quantity: Quantity | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> str:
        range_start = start or plan.boundaries[0]
        # The query end is inclusive, Flux range stops are exclusive.
        range_stop = (end or plan.end) + timedelta(milliseconds=1)
        bounds = ", ".join(str(ns) for ns in boundaries_ns(plan))
        width_ns = plan.bucket_width_ms * 1_000_000
        last_index = max(plan.bucket_count - 1, 0)

        quantity_filter = ""
        if quantity is not None:
            quantity_filter = (
                f'\n  |> filter(fn: (r) => r["quantity"] == {flux_str(quantity.value)})'
            )

        # The width estimate can be one bucket off next to a boundary that was
        # rounded to the microsecond; the planned boundaries settle it.
        return f"""
import "math"

bounds = [{bounds}]
lastBucket = {last_index}

from(bucket: {flux_str(self._bucket)})
  |> range(start: {flux_time(range_start)}, stop: {flux_time(range_stop)})
  |> filter(fn: (r) => r["_measurement"] == {flux_str(self._measurement)})
  |> filter(fn: (r) => r["owner_id"] == {flux_str(owner_id)}){quantity_filter}
  |> filter(fn: (r) => r["_field"] == "value")
  |> keep(columns: ["_time", "_value", "unit"])
  |> map(fn: (r) => {{
      t = int(v: r._time)
      guess = int(v: math.mMax(
        x: 0.0,
        y: math.mMin(
          x: math.floor(x: float(v: t - bounds[0]) / {flux_float(width_ns)}),
          y: float(v: lastBucket),
        ),
      ))
      idx = if guess < lastBucket and t >= bounds[guess + 1] then guess + 1
        else if guess > 0 and t < bounds[guess] then guess - 1
        else guess
      return {{r with bucket: idx}}
    }})
  |> group(columns: ["bucket", "unit"])
  |> reduce(
    identity: {{count: 0, sum: 0.0, min: 0.0, max: 0.0}},
    fn: (r, accumulator) => ({{
      count: accumulator.count + 1,
      sum: accumulator.sum + float(v: r._value),
      min: if accumulator.count == 0 or float(v: r._value) < accumulator.min then float(v: r._value) else accumulator.min,
      max: if accumulator.count == 0 or float(v: r._value) > accumulator.max then float(v: r._value) else accumulator.max,
    }}),
  )
  |> group()
  |> sort(columns: ["bucket", "unit"])
"""

    def group_by_bucket_and_unit(
        self,
        *,
        owner_id: str,
        plan: BucketPlan,
        quantity: Quantity | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[UnitBucketStat]:
        if plan.bucket_count == 0:
            return []

        query = self.build_grouping_query(
            owner_id=owner_id, plan=plan, quantity=quantity, start=start, end=end
        )
        query_api = self._client.query_api()
        tables = query_api.query(query=query, org=self._org)

        results: list[UnitBucketStat] = []
        for table in tables:
            for record in table.records:
                stat = _stat_from_values(record.values)
                if stat is not None:
                    results.append(stat)
        return results


def _stat_from_values(values: dict[str, Any]) -> UnitBucketStat | None:
    bucket = values.get("bucket")
    unit = values.get("unit")
    if bucket is None or not isinstance(unit, str):
        raise AggregationSourceError(f"Malformed grouping row: bucket={bucket!r} unit={unit!r}")
    try:
        parsed_unit = Unit(unit)
    except ValueError as e:
        raise AggregationSourceError(f"Grouping row has unknown unit {unit!r}") from e
    count = int(values.get("count", 0))
    if count <= 0:
        return None
    return UnitBucketStat(
        bucket_index=int(bucket),
        unit=parsed_unit,
        count=count,
        sum=float(values.get("sum", 0.0)),
        min=float(values.get("min", 0.0)),
        max=float(values.get("max", 0.0)),
    )
