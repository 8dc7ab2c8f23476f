from __future__ import annotations

import time
from collections.abc import Iterator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import config
import state
from services.broadcaster import publisher
from services.persistence import saver
from state import EventKind, store

T0 = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc).timestamp()


def iso(ts: float) -> str:
  return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class FakeClock:
  def __init__(self, now: float = T0):
    self.now = now

  def __call__(self) -> float:
    return self.now

  def advance(self, seconds: float) -> None:
    self.now += seconds


def _reset_stats() -> None:
  for key in ("received_total", "applied_total", "stale_total", "skipped_total"):
    state.stats[key] = {kind.value: 0 for kind in EventKind}
  state.stats["last_rx_ts"] = None
  state.stats["last_rx_kind"] = None
  state.stats["sweep_transitions"] = 0
  state.stats["saves_total"] = 0
  state.stats["save_failures"] = 0


@pytest.fixture()
def clock(clean_state: None, monkeypatch: pytest.MonkeyPatch) -> FakeClock:
  fake = FakeClock()
  monkeypatch.setattr(store, "clock", fake)
  return fake


@pytest.fixture(autouse=True)
def clean_state(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
  monkeypatch.setattr(config, "STATUS_FILE", str(tmp_path / "status.json"))
  monkeypatch.setattr(config, "WEBHOOK_TOKEN", "")
  monkeypatch.setattr(store, "timeout_seconds", 600.0)
  monkeypatch.setattr(store, "clock", time.time)
  store.load([])
  saver.flush()
  _reset_stats()
  yield
  saver.flush()
  for channel in list(publisher._channels):
    publisher.unsubscribe(channel)


@pytest.fixture()
def client(clock: FakeClock) -> Iterator[TestClient]:
  from app import app

  with TestClient(app) as test_client:
    yield test_client
