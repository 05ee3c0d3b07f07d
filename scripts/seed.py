"""Seed InfluxDB with 30 days of readings in every unit for two owners."""

from __future__ import annotations

import argparse
import logging
import random
from datetime import datetime, timedelta, timezone

from app.core.config import load_settings
from app.core.logging import configure_logging
from app.db.influx import create_influx_client
from app.models.metric import Quantity
from app.repositories.influx import InfluxMetricRepository
from app.services.metrics import MetricService
from app.services.units import units_for

logger = logging.getLogger("app.scripts.seed")

VALUE_RANGES = {
    Quantity.DISTANCE: (1.0, 1000.0),
    Quantity.TEMPERATURE: (1.0, 100.0),
}


def seed(
    service: MetricService,
    *,
    owners: list[str],
    start: datetime,
    days: int,
    rng: random.Random,
) -> int:
    written = 0
    for owner_id in owners:
        for day in range(days):
            timestamp = start + timedelta(days=day)
            for quantity, (low, high) in VALUE_RANGES.items():
                for unit in units_for(quantity):
                    service.ingest(
                        owner_id=owner_id,
                        value=round(rng.uniform(low, high), 2),
                        unit=unit,
                        timestamp=timestamp,
                    )
                    written += 1
    return written


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--owners", nargs="+", default=["1", "2"])
    parser.add_argument("--start", default="2025-09-01T00:00:00+00:00")
    parser.add_argument("--days", type=int, default=30)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings.log_level)
    start = datetime.fromisoformat(args.start)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)

    client = create_influx_client(settings)
    try:
        repo = InfluxMetricRepository(
            client=client,
            org=settings.influx_org,
            bucket=settings.influx_bucket,
            measurement=settings.metrics_measurement,
            timeout_ms=settings.influx_timeout_ms,
        )
        written = seed(
            MetricService(repo),
            owners=args.owners,
            start=start,
            days=args.days,
            rng=random.Random(args.seed),
        )
    finally:
        client.close()
    logger.info("Seeding completed: %d metrics written", written)


if __name__ == "__main__":
    main()
