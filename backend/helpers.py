"""
Shared helper functions for routes and services.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from state import StatusRecord, store

_EXCESS_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def iso_from_ts(ts: Optional[float]) -> Optional[str]:
  """Convert Unix timestamp to ISO 8601 string (UTC, milliseconds)."""
  if ts is None:
    return None
  try:
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
  except (TypeError, ValueError, OverflowError, OSError):
    return None
  return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_ts(value: Any) -> Optional[float]:
  """Parse an ISO 8601 string or epoch number to Unix seconds.

  Naive ISO strings are taken as UTC. Numbers above 1e11 are milliseconds.
  """
  if value is None or isinstance(value, bool):
    return None
  if isinstance(value, (int, float)):
    ts = float(value)
    if not math.isfinite(ts) or ts <= 0:
      return None
    if ts > 1e11:
      ts /= 1000.0
    return ts
  if not isinstance(value, str):
    return None
  text = value.strip()
  if not text:
    return None
  try:
    return parse_ts(float(text))
  except ValueError:
    pass
  if text.endswith("Z") or text.endswith("z"):
    text = text[:-1] + "+00:00"
  text = _EXCESS_FRACTION_RE.sub(r"\1", text)
  try:
    dt = datetime.fromisoformat(text)
  except ValueError:
    return None
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return dt.timestamp()


def status_payload(record: StatusRecord, now: Optional[float] = None) -> Dict[str, Any]:
  """Serialize a record for the API, SSE and WebSocket responses."""
  return {
    "callsign": record.callsign,
    "online": store.is_online(record, now),
    "updatedAt": iso_from_ts(record.updated_at),
    "driverStatus": record.driver_status_label or record.driver_status_code or None,
  }


def snapshot_payload(records: List[StatusRecord], now: Optional[float] = None) -> List[Dict[str, Any]]:
  return [status_payload(rec, now) for rec in records]


def status_listing(records: List[StatusRecord], now: Optional[float] = None) -> Dict[str, Any]:
  """Full listing used by the polling endpoint and the stream snapshot."""
  now = store.clock() if now is None else now
  data = snapshot_payload(records, now)
  return {"data": data, "count": len(data), "ts": iso_from_ts(now)}
