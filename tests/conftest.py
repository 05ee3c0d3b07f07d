from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.config import Settings
from app.core.security import get_password_hash
from app.factory import create_app
from tests.fakes import FakeMetricRepository


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        log_level="WARNING",
        secret_key="test_secret_key_must_be_32_chars_minimum",
        admin_username="admin",
        admin_password_hash=get_password_hash("password"),
        cors_origins=["http://localhost"],
        trusted_hosts=["testserver", "localhost"],
        influx_url="http://example.com:8086",
        influx_token="test-token-1234567890",
        influx_org="test",
        influx_bucket="test",
        metrics_measurement="unit_metrics",
        influx_timeout_ms=5000,
        default_max_data_points=100,
        max_data_points_ceiling=1000,
    )


@pytest.fixture()
def fake_repo() -> FakeMetricRepository:
    return FakeMetricRepository()


@pytest.fixture()
def client(settings: Settings, fake_repo: FakeMetricRepository) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[deps.get_metric_repository] = lambda: fake_repo
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def token(client: TestClient) -> str:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


@pytest.fixture()
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "user-id": "1"}


@pytest.fixture()
def now() -> datetime:
    return datetime.now(tz=timezone.utc)
