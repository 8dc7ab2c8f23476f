import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import config


class EventKind(str, Enum):
  PING = "ping"
  STATUS = "status"
  SHIFT = "shift"


@dataclass
class StatusRecord:
  callsign: str
  last_ping_at: Optional[float] = None
  updated_at: Optional[float] = None
  explicit_online: Optional[bool] = None
  driver_status_code: Optional[str] = None
  driver_status_label: Optional[str] = None


@dataclass(frozen=True)
class Inference:
  """What a single event says about a vehicle.

  `online` is None when nothing could be resolved. A `soft` result only fills
  an unknown explicit state and never overrides one.
  """
  online: Optional[bool] = None
  label: Optional[str] = None
  code: Optional[str] = None
  rule: str = "unresolved"
  soft: bool = False


def compute_online(record: Optional[StatusRecord], now: float, timeout_seconds: float) -> bool:
  """Derive whether a vehicle is online right now.

  1. explicit offline always wins
  2. no ping ever -> offline
  3. last ping older than the timeout -> offline
  4. otherwise online, whether explicitly or from a recent ping
  """
  if record is None:
    return False
  if record.explicit_online is False:
    return False
  if record.last_ping_at is None:
    return False
  if now - record.last_ping_at > timeout_seconds:
    return False
  return True


def _merge(existing: StatusRecord, kind: EventKind, ts: float, inference: Inference) -> StatusRecord:
  rec = replace(existing, updated_at=ts)

  if inference.code is not None:
    rec.driver_status_code = inference.code
  if inference.label is not None:
    rec.driver_status_label = inference.label

  if kind == EventKind.PING:
    rec.last_ping_at = ts
    if inference.soft:
      if rec.explicit_online is None:
        rec.explicit_online = True
    elif inference.online is not None:
      rec.explicit_online = inference.online
    return rec

  if kind == EventKind.STATUS:
    rec.last_ping_at = ts
    if inference.online is not None:
      rec.explicit_online = inference.online
    if inference.online is False:
      rec.last_ping_at = None
    return rec

  # shift change: an ended shift must not be resurrected by staleness
  if inference.online is False:
    rec.explicit_online = False
    rec.last_ping_at = None
  elif inference.online is True:
    rec.explicit_online = True
    rec.last_ping_at = ts
  else:
    rec.last_ping_at = ts
  return rec


class VehicleStore:
  """The only owner of per-callsign status records.

  Every mutation happens under one lock, so the stale-timestamp check and the
  write that follows it are atomic. Reads hand out copies.
  """

  def __init__(
    self,
    timeout_seconds: float = config.PING_TIMEOUT_SECONDS,
    clock: Callable[[], float] = time.time,
  ):
    self.timeout_seconds = timeout_seconds
    self.clock = clock
    self._lock = threading.RLock()
    self._records: Dict[str, StatusRecord] = {}
    self._last_broadcast: Dict[str, bool] = {}

  def __len__(self) -> int:
    with self._lock:
      return len(self._records)

  def apply(
    self,
    callsign: str,
    timestamp: float,
    inference: Inference,
    kind: EventKind,
  ) -> Optional[StatusRecord]:
    """Merge one event into the record for `callsign`.

    Returns a copy of the new record, or None when the event is older than
    what the record already holds.
    """
    with self._lock:
      existing = self._records.get(callsign)
      if existing is None:
        existing = StatusRecord(callsign=callsign)
      elif existing.updated_at is not None and timestamp < existing.updated_at:
        return None
      merged = _merge(existing, kind, timestamp, inference)
      self._records[callsign] = merged
      return replace(merged)

  def read(self, callsign: str) -> Optional[StatusRecord]:
    with self._lock:
      rec = self._records.get(callsign)
      return replace(rec) if rec is not None else None

  def read_all(self) -> List[StatusRecord]:
    with self._lock:
      return [replace(rec) for rec in self._records.values()]

  def is_online(self, record: Optional[StatusRecord], now: Optional[float] = None) -> bool:
    return compute_online(record, self.clock() if now is None else now, self.timeout_seconds)

  def mark_broadcast(self, callsign: str, online: bool) -> None:
    with self._lock:
      self._last_broadcast[callsign] = online

  def sweep(self, now: Optional[float] = None) -> List[StatusRecord]:
    """Return records whose derived online differs from the last broadcast.

    The last-broadcast value is updated in the same critical section so a
    transition is reported once.
    """
    now = self.clock() if now is None else now
    flipped: List[StatusRecord] = []
    with self._lock:
      for callsign, rec in self._records.items():
        online = compute_online(rec, now, self.timeout_seconds)
        previous = self._last_broadcast.get(callsign)
        self._last_broadcast[callsign] = online
        if previous is None or previous == online:
          continue
        flipped.append(replace(rec))
    return flipped

  def load(self, records: Iterable[Tuple[str, StatusRecord]]) -> int:
    """Replace all records, e.g. from a persisted snapshot."""
    now = self.clock()
    with self._lock:
      self._records = {}
      self._last_broadcast = {}
      for callsign, rec in records:
        self._records[callsign] = replace(rec, callsign=callsign)
        self._last_broadcast[callsign] = compute_online(rec, now, self.timeout_seconds)
      return len(self._records)


def _empty_counts() -> Dict[str, int]:
  return {kind.value: 0 for kind in EventKind}


stats: Dict[str, Any] = {
  "received_total": _empty_counts(),
  "applied_total": _empty_counts(),
  "stale_total": _empty_counts(),
  "skipped_total": _empty_counts(),
  "last_rx_ts": None,
  "last_rx_kind": None,
  "sweep_transitions": 0,
  "saves_total": 0,
  "save_failures": 0,
}

store = VehicleStore()
