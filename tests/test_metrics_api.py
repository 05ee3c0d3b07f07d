from __future__ import annotations

from fastapi.testclient import TestClient

from tests.fakes import FakeMetricRepository

START = "2025-10-01T00:00:00Z"
END = "2025-10-10T00:00:00Z"


def _post(client: TestClient, headers: dict[str, str], **body) -> dict:
    resp = client.post("/api/v1/metrics", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_write_metric(client: TestClient, auth_headers: dict[str, str]) -> None:
    body = _post(client, auth_headers, value=21.5, unit="CELSIUS", date="2025-10-02T12:00:00Z")

    assert body["owner_id"] == "1"
    assert body["unit"] == "CELSIUS"
    assert body["quantity"] == "TEMPERATURE"
    assert body["value"] == 21.5
    assert body["id"]


def test_write_metric_unknown_unit(client: TestClient, auth_headers: dict[str, str]) -> None:
    resp = client.post(
        "/api/v1/metrics", json={"value": 1, "unit": "PARSEC"}, headers=auth_headers
    )

    assert resp.status_code == 400, resp.text
    detail = resp.json()["detail"]
    assert detail["error"] == "unknown_unit"
    assert detail["field"] == "unit"


def test_owner_header_required(client: TestClient, token: str) -> None:
    resp = client.post(
        "/api/v1/metrics",
        json={"value": 1, "unit": "METER"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "user-id"


def test_owner_header_accepts_userid_fallback(client: TestClient, token: str) -> None:
    body = _post(
        client,
        {"Authorization": f"Bearer {token}", "userid": "7"},
        value=3,
        unit="METER",
        date="2025-10-02T12:00:00Z",
    )

    assert body["owner_id"] == "7"


def test_owner_header_prefers_user_id(client: TestClient, token: str) -> None:
    body = _post(
        client,
        {"Authorization": f"Bearer {token}", "user-id": "1", "userid": "7"},
        value=3,
        unit="METER",
        date="2025-10-02T12:00:00Z",
    )

    assert body["owner_id"] == "1"


def test_query_buckets_in_target_unit(client: TestClient, auth_headers: dict[str, str]) -> None:
    _post(client, auth_headers, value=0, unit="CELSIUS", date="2025-10-01T00:00:00Z")
    _post(client, auth_headers, value=212, unit="FAHRENHEIT", date="2025-10-01T06:00:00Z")
    _post(client, auth_headers, value=283.15, unit="KELVIN", date="2025-10-09T00:00:00Z")
    _post(client, {**auth_headers, "user-id": "2"}, value=99, unit="CELSIUS", date=START)

    resp = client.get(
        "/api/v1/metrics",
        params={"quantity": "TEMPERATURE", "unit": "CELSIUS", "start": START, "end": END,
                "max_points": 5},
        headers=auth_headers,
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    buckets = body["buckets"]
    meta = body["meta"]
    assert len(buckets) == 2
    assert buckets[0]["count"] == 2
    assert abs(buckets[0]["average_value"] - 50.0) < 1e-9
    assert abs(buckets[0]["max"] - 100.0) < 1e-9
    assert abs(buckets[1]["average_value"] - 10.0) < 1e-9
    assert meta["total_records"] == 3
    assert meta["returned_points"] == 2
    assert meta["max_data_points"] == 5
    assert meta["target_unit"] == "CELSIUS"
    assert meta["quantity"] == "TEMPERATURE"


def test_query_unit_mismatch(client: TestClient, auth_headers: dict[str, str]) -> None:
    _post(client, auth_headers, value=3, unit="METER", date="2025-10-02T00:00:00Z")

    resp = client.get(
        "/api/v1/metrics",
        params={"quantity": "DISTANCE", "unit": "KELVIN", "start": START, "end": END},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "unit_quantity_mismatch"


def test_query_invalid_range(client: TestClient, auth_headers: dict[str, str]) -> None:
    resp = client.get(
        "/api/v1/metrics",
        params={"quantity": "DISTANCE", "unit": "METER", "start": END, "end": START},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "invalid_range"


def test_query_source_failure(
    client: TestClient, auth_headers: dict[str, str], fake_repo: FakeMetricRepository
) -> None:
    fake_repo.fail_with = TimeoutError("influx timed out")

    resp = client.get(
        "/api/v1/metrics",
        params={"quantity": "DISTANCE", "unit": "METER", "start": START, "end": END},
        headers=auth_headers,
    )

    assert resp.status_code == 503
    assert resp.json()["detail"] == "InfluxDB unavailable"


def test_units_catalogue(client: TestClient) -> None:
    resp = client.get("/api/v1/metrics/units")

    assert resp.status_code == 200
    catalog = {row["quantity"]: row for row in resp.json()}
    assert catalog["DISTANCE"]["base_unit"] == "METER"
    assert "YARD" in catalog["DISTANCE"]["units"]
    assert catalog["TEMPERATURE"]["units"] == ["CELSIUS", "FAHRENHEIT", "KELVIN"]


def test_health(client: TestClient, fake_repo: FakeMetricRepository) -> None:
    assert client.get("/api/v1/metrics/health").json() == {"status": "ok"}

    fake_repo.fail_with = ConnectionError("down")
    assert client.get("/api/v1/metrics/health").status_code == 503


def test_auth_required(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/metrics",
        json={"value": 1, "unit": "METER"},
        headers={"user-id": "1"},
    )
    assert resp.status_code in {401, 403}
