from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

import config
from routes import api as api_routes
from services.upstream import UpstreamError, fetch_vehicles, normalize_vehicles
from tests.conftest import T0, iso


def test_healthz(client: TestClient) -> None:
  assert client.get("/healthz").json() == {"ok": True}


def test_index_page_is_served(client: TestClient) -> None:
  response = client.get("/")
  assert response.status_code == 200
  assert "text/html" in response.headers["content-type"]


def test_empty_status_listing(client: TestClient) -> None:
  assert client.get("/api/status").json() == {"data": [], "count": 0, "ts": "2025-03-01T10:00:00.000Z"}


def test_stats_report_counters(client: TestClient) -> None:
  client.post("/webhook/HackneyLocation", json=[{"callsign": "A1"}, {"nope": 1}])

  body = client.get("/stats").json()
  assert body["vehicles"] == 1
  assert body["online"] == 1
  assert body["stats"]["received_total"]["ping"] == 2
  assert body["stats"]["applied_total"]["ping"] == 1
  assert body["stats"]["skipped_total"]["ping"] == 1
  assert body["stats"]["last_rx_kind"] == "ping"
  assert body["stats"]["last_rx_ts"] == "2025-03-01T10:00:00.000Z"
  assert body["webhook_auth"] is False


def test_websocket_gets_snapshot_then_changes(client: TestClient) -> None:
  client.post("/webhook/HackneyLocation", json={"callsign": "A1", "Timestamp": iso(T0)})

  with client.websocket_connect("/ws") as ws:
    snapshot = ws.receive_json()
    assert snapshot["type"] == "snapshot"
    assert [item["callsign"] for item in snapshot["data"]["data"]] == ["A1"]

    client.post("/webhook/ShiftChange", json={"callsign": "A1", "ShiftStatus": "Off Shift", "Timestamp": iso(T0 + 1)})
    change = ws.receive_json()
    assert change == {
      "type": "status",
      "data": {
        "callsign": "A1",
        "online": False,
        "updatedAt": "2025-03-01T10:00:01.000Z",
        "driverStatus": "Off Shift",
      },
    }


def test_vehicles_without_key_is_a_server_error(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(config, "AUTOCAB_KEY", "")

  response = client.get("/api/vehicles")
  assert response.status_code == 500
  assert response.json() == {"error": "missing_autocab_key"}


def test_vehicles_passes_upstream_errors_through(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
  async def failing_fetch():
    raise UpstreamError(403, "Access denied", passthrough=True)

  monkeypatch.setattr(api_routes, "fetch_vehicles", failing_fetch)

  response = client.get("/api/vehicles")
  assert response.status_code == 403
  assert response.text == "Access denied"


def test_vehicles_success(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
  async def fake_fetch():
    return [{"Callsign": "A1", "IsSuspended": False}]

  monkeypatch.setattr(api_routes, "fetch_vehicles", fake_fetch)

  assert client.get("/api/vehicles").json() == [{"Callsign": "A1", "IsSuspended": False}]


def test_normalize_vehicles_coerces_flag() -> None:
  data = [{"Callsign": "A1"}, {"Callsign": "B2", "IsSuspended": "true"}, {"Callsign": "C3", "IsSuspended": 0}]
  assert normalize_vehicles(data, "IsSuspended") == [
    {"Callsign": "A1", "IsSuspended": False},
    {"Callsign": "B2", "IsSuspended": True},
    {"Callsign": "C3", "IsSuspended": False},
  ]

  wrapped = {"Vehicles": [{"Callsign": "A1", "IsSuspended": True}], "Total": 1}
  assert normalize_vehicles(wrapped, "IsSuspended")["Vehicles"][0]["IsSuspended"] is True


@pytest.mark.asyncio
async def test_fetch_vehicles_sends_key(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(config, "AUTOCAB_KEY", "k-123")
  seen = {}

  def handler(request: httpx.Request) -> httpx.Response:
    seen["key"] = request.headers.get("Ocp-Apim-Subscription-Key")
    seen["url"] = str(request.url)
    return httpx.Response(200, json=[{"Callsign": "A1"}])

  async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
    data = await fetch_vehicles(client)

  assert data == [{"Callsign": "A1", "IsSuspended": False}]
  assert seen == {"key": "k-123", "url": config.AUTOCAB_VEHICLES_URL}


@pytest.mark.asyncio
async def test_fetch_vehicles_error_statuses(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(config, "AUTOCAB_KEY", "k-123")

  def denied(request: httpx.Request) -> httpx.Response:
    return httpx.Response(401, text="bad key")

  async with httpx.AsyncClient(transport=httpx.MockTransport(denied)) as client:
    with pytest.raises(UpstreamError) as exc_info:
      await fetch_vehicles(client)
  assert exc_info.value.status_code == 401
  assert exc_info.value.body == "bad key"
  assert exc_info.value.passthrough is True

  def garbage(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>")

  async with httpx.AsyncClient(transport=httpx.MockTransport(garbage)) as client:
    with pytest.raises(UpstreamError) as exc_info:
      await fetch_vehicles(client)
  assert exc_info.value.status_code == 502

  def timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)

  async with httpx.AsyncClient(transport=httpx.MockTransport(timeout)) as client:
    with pytest.raises(UpstreamError) as exc_info:
      await fetch_vehicles(client)
  assert exc_info.value.status_code == 504
