from __future__ import annotations

from datetime import datetime, timedelta, timezone


def to_rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def flux_str(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def flux_time(dt: datetime) -> str:
    return f"time(v: {flux_str(to_rfc3339(dt))})"


def flux_float(value: float) -> str:
    # Flux float literals need a decimal point and no exponent.
    return f"{float(value):.6f}"


def to_epoch_ns(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt.astimezone(timezone.utc) - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return delta // timedelta(microseconds=1) * 1000
