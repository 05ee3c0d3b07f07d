from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes

from app.core.config import Settings
from app.core.security import (
    ALL_SCOPES,
    METRICS_READ,
    METRICS_WRITE,
    InvalidTokenError,
    decode_access_token,
    verify_password,
)
from app.repositories.base import MetricRepository
from app.repositories.influx import InfluxMetricRepository
from app.schemas.auth import User
from app.services.metrics import MetricService

OWNER_ID_HEADER = "user-id"
LEGACY_OWNER_ID_HEADER = "userid"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", scopes=ALL_SCOPES)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metric_repository(
    request: Request, settings: Annotated[Settings, Depends(get_settings)]
) -> MetricRepository:
    return InfluxMetricRepository(
        client=request.app.state.influx_client,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        measurement=settings.metrics_measurement,
        timeout_ms=settings.influx_timeout_ms,
    )


def get_metric_service(
    repo: Annotated[MetricRepository, Depends(get_metric_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MetricService:
    return MetricService(
        repo,
        default_max_points=settings.default_max_data_points,
        max_points_ceiling=settings.max_data_points_ceiling,
    )


def get_owner_id(
    user_id: Annotated[str | None, Header(alias=OWNER_ID_HEADER)] = None,
    legacy_user_id: Annotated[str | None, Header(alias=LEGACY_OWNER_ID_HEADER)] = None,
) -> str:
    owner_id = (user_id or legacy_user_id or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "missing_owner",
                "field": OWNER_ID_HEADER,
                "message": "User ID is required",
            },
        )
    return owner_id


def authenticate_user(*, username: str, password: str, settings: Settings) -> User | None:
    if username != settings.admin_username:
        return None
    if not verify_password(password, settings.admin_password_hash):
        return None
    return User(username=username, scopes=[METRICS_READ, METRICS_WRITE])


def get_current_user(
    security_scopes: SecurityScopes,
    token: Annotated[str, Depends(oauth2_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    authenticate_value = "Bearer"
    if security_scopes.scopes:
        authenticate_value = f'Bearer scope="{security_scopes.scope_str}"'

    try:
        claims = decode_access_token(token, settings=settings)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": authenticate_value},
        ) from e

    user = User(username=claims.subject, scopes=claims.scopes)
    for scope in security_scopes.scopes:
        if scope not in user.scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
                headers={"WWW-Authenticate": authenticate_value},
            )
    return user


ReadUser = Annotated[User, Security(get_current_user, scopes=[METRICS_READ])]
WriteUser = Annotated[User, Security(get_current_user, scopes=[METRICS_WRITE])]
OwnerId = Annotated[str, Depends(get_owner_id)]
