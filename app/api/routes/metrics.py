from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import OwnerId, ReadUser, WriteUser, get_metric_repository, get_metric_service
from app.core.errors import MetricsError, MetricsInputError
from app.models.metric import Quantity
from app.repositories.base import MetricRepository
from app.schemas.metrics import (
    UNIT_PATTERN,
    MetricCreate,
    MetricCreated,
    MetricsQueryResponse,
    UnitCatalog,
)
from app.services.metrics import MetricService
from app.services.units import BASE_UNITS

router = APIRouter(prefix="/metrics")


def _raise_http(e: MetricsError) -> NoReturn:
    if isinstance(e, MetricsInputError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail()) from e
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="InfluxDB unavailable",
    ) from e


@router.post("", response_model=MetricCreated, status_code=status.HTTP_201_CREATED)
def create_metric(
    _: WriteUser,
    owner_id: OwnerId,
    payload: MetricCreate,
    service: Annotated[MetricService, Depends(get_metric_service)],
) -> MetricCreated:
    try:
        record = service.ingest(
            owner_id=owner_id, value=payload.value, unit=payload.unit, timestamp=payload.date
        )
    except MetricsError as e:
        _raise_http(e)
    return MetricCreated(
        id=record.id,
        owner_id=record.owner_id,
        value=record.value,
        unit=record.unit,
        quantity=record.quantity,
        date=record.timestamp,
    )


@router.get("", response_model=MetricsQueryResponse)
def query_metrics(
    _: ReadUser,
    owner_id: OwnerId,
    quantity: Annotated[Quantity, Query()],
    unit: Annotated[str, Query(pattern=UNIT_PATTERN)],
    service: Annotated[MetricService, Depends(get_metric_service)],
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
    max_points: Annotated[int | None, Query()] = None,
) -> MetricsQueryResponse:
    end_dt = end or datetime.now(tz=timezone.utc)
    start_dt = start or end_dt - timedelta(hours=1)
    try:
        result = service.query(
            owner_id=owner_id,
            quantity=quantity,
            target_unit=unit,
            start=start_dt,
            end=end_dt,
            max_points=max_points,
        )
    except MetricsError as e:
        _raise_http(e)
    return MetricsQueryResponse.model_validate(
        {"buckets": [asdict(b) for b in result.buckets], "meta": asdict(result.meta)}
    )


@router.get("/units", response_model=list[UnitCatalog])
def list_units(
    service: Annotated[MetricService, Depends(get_metric_service)],
) -> list[UnitCatalog]:
    return [
        UnitCatalog(quantity=quantity, base_unit=BASE_UNITS[quantity], units=units)
        for quantity, units in service.units().items()
    ]


@router.get("/health", tags=["meta"])
def health(
    repo: Annotated[MetricRepository, Depends(get_metric_repository)],
) -> dict[str, str]:
    try:
        repo.ping()
    except Exception as e:  # noqa: BLE001 - expose as 503 without leaking internals
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="InfluxDB unavailable",
        ) from e
    return {"status": "ok"}
