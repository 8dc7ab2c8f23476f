from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import config
import state
from state import store
from tests.conftest import T0, FakeClock, iso


def _status_of(client: TestClient, callsign: str) -> dict:
  listing = client.get("/api/status").json()
  return {item["callsign"]: item for item in listing["data"]}[callsign]


def test_ping_creates_online_vehicle(client: TestClient) -> None:
  response = client.post("/webhook/HackneyLocation", json={"callsign": "ab12", "Timestamp": iso(T0)})

  assert response.status_code == 200
  assert response.json() == {"ok": True, "updates": 1, "skipped": 0, "stale": 0}
  assert _status_of(client, "AB12") == {
    "callsign": "AB12",
    "online": True,
    "updatedAt": "2025-03-01T10:00:00.000Z",
    "driverStatus": None,
  }


def test_partial_success_counts_skipped_items(client: TestClient) -> None:
  body = [
    {"callsign": "A1"},
    {"Vehicle": {"Callsign": "B2"}},
    {"Vehicle": {}},
    "junk",
  ]
  response = client.post("/webhook/HackneyLocation", json=body)

  assert response.json() == {"ok": True, "updates": 2, "skipped": 2, "stale": 0}
  assert state.stats["received_total"]["ping"] == 4
  assert state.stats["skipped_total"]["ping"] == 2


def test_unparseable_body_is_accepted_as_empty(client: TestClient) -> None:
  response = client.post(
    "/webhook/Status",
    content=b"{not json",
    headers={"content-type": "application/json"},
  )

  assert response.status_code == 200
  assert response.json() == {"ok": True, "updates": 0, "skipped": 0, "stale": 0}
  assert len(store) == 0


def test_skipped_items_are_logged(client: TestClient, capsys: pytest.CaptureFixture[str]) -> None:
  client.post("/webhook/Status", json=[{"VehicleStatus": "Clear"}, "junk", {"callsign": "A1"}])

  out = capsys.readouterr().out
  assert "[webhook] Status: skipped 2 unusable item(s)" in out
  assert "[webhook] Status: updated 1 vehicles" in out


def test_form_encoded_body(client: TestClient) -> None:
  response = client.post("/webhook/ShiftChange", data={"Callsign": "C3", "ShiftStatus": "Logged On"})

  assert response.json()["updates"] == 1
  assert _status_of(client, "C3")["online"] is True


def test_vehicle_tracks_wrapper(client: TestClient) -> None:
  body = {
    "EventType": "VehicleTracksChanged",
    "VehicleTracks": [
      {"Vehicle": {"Callsign": "204"}, "VehicleStatus": "BusyMeterOnFromMeterOffAccount", "Timestamp": iso(T0)},
      {"Vehicle": {"Callsign": "205"}, "VehicleStatus": "NotWorking", "Timestamp": iso(T0)},
    ],
  }
  response = client.post("/webhook/Status", json=body)

  assert response.json()["updates"] == 2
  busy = _status_of(client, "204")
  assert busy["online"] is True
  assert busy["driverStatus"] == "Busy (Account)"
  assert _status_of(client, "205")["online"] is False


def test_stale_events_are_counted(client: TestClient) -> None:
  client.post("/webhook/Status", json={"callsign": "A1", "VehicleStatus": "Clear", "Timestamp": iso(T0 + 10)})
  response = client.post(
    "/webhook/ShiftChange",
    json={"callsign": "A1", "ShiftStatus": "Logged Off", "Timestamp": iso(T0 + 5)},
  )

  assert response.json() == {"ok": True, "updates": 0, "skipped": 0, "stale": 1}
  assert _status_of(client, "A1")["online"] is True
  assert state.stats["stale_total"]["shift"] == 1


def test_missing_timestamp_uses_receive_time(client: TestClient, clock: FakeClock) -> None:
  clock.advance(42)
  client.post("/webhook/HackneyLocation", json={"callsign": "A1"})

  record = store.read("A1")
  assert record is not None
  assert record.updated_at == T0 + 42


@pytest.mark.parametrize("path", ["/webhook/HackneyLocation", "/webhook/Status", "/webhook/ShiftChange"])
def test_token_is_required_when_configured(
  client: TestClient, monkeypatch: pytest.MonkeyPatch, path: str
) -> None:
  monkeypatch.setattr(config, "WEBHOOK_TOKEN", "s3cret")

  assert client.post(path, json={"callsign": "A1"}).status_code == 401
  assert client.post(path, json={"callsign": "A1"}, headers={"x-webhook-token": "wrong"}).status_code == 401
  assert len(store) == 0

  ok = client.post(path, json={"callsign": "A1"}, headers={"x-webhook-token": "s3cret"})
  assert ok.status_code == 200
  assert ok.json()["updates"] == 1


def test_accepted_events_schedule_a_save(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
  from services.persistence import saver

  monkeypatch.setattr(saver, "delay_seconds", 60.0)
  client.post("/webhook/HackneyLocation", json={"callsign": "A1"})
  assert saver.dirty
  assert saver.scheduled


def test_end_to_end_shift_lifecycle(client: TestClient, clock: FakeClock) -> None:
  client.post("/webhook/HackneyLocation", json={"callsign": "AB12", "Timestamp": iso(T0)})
  assert _status_of(client, "AB12")["online"] is True

  client.post(
    "/webhook/Status",
    json={"VehicleTracks": [{"Vehicle": {"Callsign": "AB12"}, "VehicleStatus": "Dispatched", "Timestamp": iso(T0 + 1)}]},
  )
  dispatched = _status_of(client, "AB12")
  assert dispatched["online"] is True
  assert dispatched["driverStatus"] == "Dispatched"

  client.post("/webhook/ShiftChange", json={"callsign": "AB12", "ShiftStatus": "signed off", "Timestamp": iso(T0 + 2)})
  late = client.post("/webhook/HackneyLocation", json={"callsign": "AB12", "Timestamp": iso(T0 + 1)})
  assert late.json()["stale"] == 1

  clock.advance(3)
  final = _status_of(client, "AB12")
  assert final["online"] is False
  assert final["driverStatus"] == "Logged Off"
  assert final["updatedAt"] == "2025-03-01T10:00:02.000Z"
