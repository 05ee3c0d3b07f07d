from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidRangeError
from app.services.buckets import plan_buckets, to_epoch_ms

OCT_1 = datetime(2025, 10, 1, tzinfo=timezone.utc)
OCT_10 = datetime(2025, 10, 10, tzinfo=timezone.utc)


@pytest.mark.parametrize("max_points", [1, 2, 10, 1000])
def test_single_instant_range_yields_one_bucket(max_points: int) -> None:
    plan = plan_buckets(OCT_1, OCT_1, max_points)

    assert len(plan.boundaries) == 2
    assert plan.bucket_count == 1
    assert plan.bucket_width_ms == 1.0


def test_ten_day_range_with_five_points() -> None:
    plan = plan_buckets(OCT_1, OCT_10, 5)

    assert len(plan.boundaries) - 1 <= 5
    assert plan.boundaries[0] == OCT_1
    assert plan.boundaries[-1] >= OCT_10
    total_ms = to_epoch_ms(OCT_10) - to_epoch_ms(OCT_1) + 1
    assert plan.bucket_width_ms == pytest.approx(total_ms / 5)

    # Consecutive buckets share their edge: no gaps, no overlaps.
    for i in range(plan.bucket_count - 1):
        assert plan.bucket_end(i) == plan.bucket_start(i + 1)


@pytest.mark.parametrize("max_points", [1, 3, 7, 100, 1000])
def test_boundaries_strictly_increasing_and_unique(max_points: int) -> None:
    plan = plan_buckets(OCT_1, OCT_10, max_points)

    assert len(plan.boundaries) - 1 <= max_points
    assert len(set(plan.boundaries)) == len(plan.boundaries)
    assert all(a < b for a, b in zip(plan.boundaries, plan.boundaries[1:]))


def test_bucket_count_capped_by_duration() -> None:
    end = OCT_1 + timedelta(milliseconds=2)
    plan = plan_buckets(OCT_1, end, 10)

    assert plan.bucket_count == 3
    assert plan.bucket_width_ms == 1.0
    assert plan.boundaries[-1] == end + timedelta(milliseconds=1)


def test_naive_datetimes_are_treated_as_utc() -> None:
    plan = plan_buckets(datetime(2025, 10, 1), datetime(2025, 10, 2), 4)

    assert plan.start == OCT_1
    assert plan.boundaries[0].tzinfo is not None


def test_start_after_end_is_rejected() -> None:
    with pytest.raises(InvalidRangeError) as exc:
        plan_buckets(OCT_10, OCT_1, 5)
    assert exc.value.field == "start"


@pytest.mark.parametrize("max_points", [0, -3])
def test_non_positive_point_budget_is_rejected(max_points: int) -> None:
    with pytest.raises(InvalidRangeError) as exc:
        plan_buckets(OCT_1, OCT_10, max_points)
    assert exc.value.field == "max_points"


def test_locate_assigns_each_instant_to_one_bucket() -> None:
    plan = plan_buckets(OCT_1, OCT_10, 5)

    assert plan.locate(OCT_1) == 0
    assert plan.locate(OCT_10) == plan.bucket_count - 1
    assert plan.locate(plan.boundaries[-1]) == plan.bucket_count - 1
    assert plan.locate(plan.boundaries[2]) == 2
    assert plan.locate(plan.boundaries[2] - timedelta(microseconds=1)) == 1
    assert plan.locate(OCT_1 - timedelta(seconds=1)) is None
    assert plan.locate(OCT_10 + timedelta(days=1)) is None
