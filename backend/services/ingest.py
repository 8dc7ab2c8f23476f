"""
Webhook ingestion service.

Runs one request body through normalize -> infer -> apply, then broadcasts
the accepted records and schedules a snapshot save.
"""

from dataclasses import dataclass
from typing import Any, Optional

import config
import state
from inference import infer
from normalizer import coerce_payload_to_list, extract_callsign, extract_timestamp, normalize_callsign
from services.broadcaster import publisher
from services.persistence import saver
from state import EventKind, store

WEBHOOK_NAMES = {
  EventKind.PING: "HackneyLocation",
  EventKind.STATUS: "Status",
  EventKind.SHIFT: "ShiftChange",
}


@dataclass
class IngestResult:
  updates: int = 0
  skipped: int = 0
  stale: int = 0

  def as_response(self) -> dict:
    return {"ok": True, "updates": self.updates, "skipped": self.skipped, "stale": self.stale}


def ingest(kind: EventKind, body: Any, now: Optional[float] = None) -> IngestResult:
  """Apply every event in `body` and report how many took effect."""
  now = store.clock() if now is None else now
  result = IngestResult()
  name = WEBHOOK_NAMES[kind]
  items = coerce_payload_to_list(body)

  state.stats["received_total"][kind.value] += len(items)
  state.stats["last_rx_ts"] = now
  state.stats["last_rx_kind"] = kind.value

  for item in items:
    if not isinstance(item, dict):
      result.skipped += 1
      continue

    callsign = normalize_callsign(extract_callsign(item))
    if not callsign:
      result.skipped += 1
      if config.DEBUG_WEBHOOKS:
        print(f"[webhook] {name}: skipped item without callsign keys={sorted(item.keys())[:12]}")
      continue

    ts = extract_timestamp(item)
    if ts is None:
      ts = now

    inference = infer(item, kind)
    record = store.apply(callsign, ts, inference, kind)
    if record is None:
      result.stale += 1
      if config.DEBUG_WEBHOOKS:
        print(f"[webhook] {name}: stale event for {callsign} ignored")
      continue

    result.updates += 1
    publisher.publish_record(record)

    if kind == EventKind.SHIFT:
      print(
        f"[webhook] ShiftChange: {callsign} rule={inference.rule} "
        f"status={inference.code!r} explicitOnline={record.explicit_online}"
      )

  state.stats["applied_total"][kind.value] += result.updates
  state.stats["stale_total"][kind.value] += result.stale
  state.stats["skipped_total"][kind.value] += result.skipped

  if result.skipped > 0:
    print(f"[webhook] {name}: skipped {result.skipped} unusable item(s)")
  if result.updates > 0:
    saver.schedule()
    print(f"[webhook] {name}: updated {result.updates} vehicles")
  return result
