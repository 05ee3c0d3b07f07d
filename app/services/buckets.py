from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.core.errors import InvalidRangeError
from app.models.metric import BucketPlan

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    return (to_utc(dt) - EPOCH) // _ONE_MS


def from_epoch_ms(ms: float) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def plan_buckets(start: datetime, end: datetime, max_points: int) -> BucketPlan:
    """Split ``[start, end]`` into at most ``max_points`` equal-width buckets.

    Durations are counted in whole milliseconds and the range is inclusive, so a
    single-instant range still spans one millisecond and yields one bucket.
    Never plans more buckets than there are milliseconds in the range.
    """
    if max_points < 1:
        raise InvalidRangeError("'max_points' must be >= 1", field="max_points")

    start = to_utc(start)
    end = to_utc(end)
    if start > end:
        raise InvalidRangeError("'start' must be <= 'end'", field="start")

    start_ms = to_epoch_ms(start)
    end_ms = to_epoch_ms(end)

    total_duration = end_ms - start_ms + 1
    effective_points = min(max_points, total_duration)
    bucket_width = total_duration / effective_points

    boundaries = tuple(
        from_epoch_ms(start_ms + bucket_width * i) for i in range(effective_points + 1)
    )
    return BucketPlan(
        start=start,
        end=end,
        boundaries=boundaries,
        bucket_width_ms=bucket_width,
    )
