"""
State persistence service.

Loads the status snapshot once at startup and writes it back, debounced,
after changes. Disk trouble is logged and never affects the live state.
"""

import asyncio
import json
import os
import threading
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Tuple

import config
import state
from helpers import parse_ts
from inference import display_label
from normalizer import normalize_callsign
from state import StatusRecord, store

SNAPSHOT_VERSION = 1


def _optional_bool(value: Any) -> Optional[bool]:
  return value if isinstance(value, bool) else None


def _optional_str(value: Any) -> Optional[str]:
  if value is None:
    return None
  text = str(value).strip()
  return text or None


def record_from_dict(callsign: str, raw: Dict[str, Any]) -> StatusRecord:
  """Build a record from either the current or the legacy camelCase shape.

  Missing fields fall back to None: no ping means offline, no flag means unknown.
  """
  if "last_ping_at" in raw or "updated_at" in raw or "explicit_online" in raw:
    return StatusRecord(
      callsign=callsign,
      last_ping_at=parse_ts(raw.get("last_ping_at")),
      updated_at=parse_ts(raw.get("updated_at")),
      explicit_online=_optional_bool(raw.get("explicit_online")),
      driver_status_code=_optional_str(raw.get("driver_status_code")),
      driver_status_label=_optional_str(raw.get("driver_status_label")),
    )

  legacy_status = _optional_str(raw.get("driverStatus"))
  return StatusRecord(
    callsign=callsign,
    last_ping_at=parse_ts(raw.get("lastPingAt")),
    updated_at=parse_ts(raw.get("updatedAt")),
    explicit_online=_optional_bool(raw.get("explicitOnline")),
    driver_status_code=legacy_status,
    driver_status_label=display_label(legacy_status),
  )


def parse_snapshot(data: Any) -> List[Tuple[str, StatusRecord]]:
  """Accept `{"records": [[callsign, record], ...]}` or a bare list of pairs."""
  if isinstance(data, dict):
    data = data.get("records")
  if not isinstance(data, list):
    return []

  records: List[Tuple[str, StatusRecord]] = []
  for entry in data:
    if not isinstance(entry, (list, tuple)) or len(entry) != 2:
      continue
    callsign = normalize_callsign(entry[0])
    raw = entry[1]
    if not callsign or not isinstance(raw, dict):
      continue
    records.append((callsign, record_from_dict(callsign, raw)))
  return records


def serialize_state(records: List[StatusRecord]) -> Dict[str, Any]:
  """Serialize current state for saving."""
  return {
    "version": SNAPSHOT_VERSION,
    "saved_at": store.clock(),
    "records": [[rec.callsign, asdict(rec)] for rec in records],
  }


def load_state(path: Optional[str] = None) -> int:
  """Seed the store from the status file. Returns the number of records."""
  path = path or config.STATUS_FILE
  try:
    if not os.path.exists(path):
      print(f"[state] no {path} found; starting fresh")
      store.load([])
      return 0
    with open(path, "r", encoding="utf-8") as handle:
      data = json.load(handle)
  except Exception as exc:
    print(f"[state] failed to load {path}: {exc}")
    store.load([])
    return 0

  count = store.load(parse_snapshot(data))
  print(f"[state] loaded {count} status records from {path}")
  return count


def write_snapshot(records: List[StatusRecord], path: Optional[str] = None) -> bool:
  path = path or config.STATUS_FILE
  try:
    directory = os.path.dirname(path)
    if directory:
      os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
      json.dump(serialize_state(records), handle)
    os.replace(tmp_path, path)
  except Exception as exc:
    state.stats["save_failures"] += 1
    print(f"[state] failed to save {path}: {exc}")
    return False
  state.stats["saves_total"] += 1
  return True


class SnapshotWriter:
  """Debounced snapshot writes.

  Each `schedule()` restarts the timer, so a burst of changes collapses into
  one write of the latest state. Only one write runs at a time and each one
  reads the store while holding the write lock, so the last write to finish
  always carries the newest state. Changes made during the final window are
  lost if the process dies before the timer fires.
  """

  def __init__(self, delay_seconds: Optional[float] = None, path: Optional[str] = None):
    self.delay_seconds = config.SAVE_DEBOUNCE_SECONDS if delay_seconds is None else delay_seconds
    self.path = path
    self.dirty = False
    self._lock = threading.Lock()
    self._handle: Optional[asyncio.TimerHandle] = None
    self._pending: Optional["asyncio.Future[bool]"] = None

  @property
  def scheduled(self) -> bool:
    return self._handle is not None

  def schedule(self) -> None:
    self.dirty = True
    try:
      loop = asyncio.get_running_loop()
    except RuntimeError:
      self.flush()
      return
    if self._handle is not None:
      self._handle.cancel()
    self._handle = loop.call_later(self.delay_seconds, self._fire, loop)

  def _write(self) -> bool:
    with self._lock:
      return write_snapshot(store.read_all(), self.path)

  def _busy(self, loop: asyncio.AbstractEventLoop) -> bool:
    pending = self._pending
    return pending is not None and not pending.done() and pending.get_loop() is loop

  def _fire(self, loop: asyncio.AbstractEventLoop) -> None:
    # a write is still running: try again after another delay
    if self._busy(loop):
      self._handle = loop.call_later(self.delay_seconds, self._fire, loop)
      return
    self._handle = None
    self.dirty = False
    self._pending = loop.run_in_executor(None, self._write)

  async def wait(self) -> None:
    """Wait for an in-flight write, if any."""
    if self._busy(asyncio.get_running_loop()):
      await self._pending

  def flush(self) -> bool:
    """Cancel the timer and write the current state now, if anything changed.

    Blocks until an in-flight background write has finished.
    """
    if self._handle is not None:
      self._handle.cancel()
      self._handle = None
    if not self.dirty:
      return False
    self.dirty = False
    return self._write()


saver = SnapshotWriter()
