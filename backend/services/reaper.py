"""
Reaper service for surfacing stale vehicles.

Records are never removed. The sweep only notices that time has passed since
the last ping and pushes the resulting online -> offline transitions.
"""

import asyncio
from typing import List, Optional

import config
import state
from services.broadcaster import publisher
from state import StatusRecord, store


def sweep_once(now: Optional[float] = None) -> List[StatusRecord]:
  """Broadcast every record whose derived online flipped since the last push."""
  now = store.clock() if now is None else now
  flipped = store.sweep(now)
  for record in flipped:
    publisher.publish_record(record, now)
  if flipped:
    state.stats["sweep_transitions"] += len(flipped)
    names = ", ".join(rec.callsign for rec in flipped[:10])
    print(f"[sweep] {len(flipped)} status transition(s): {names}")
  return flipped


async def reaper() -> None:
  """Periodically re-evaluate derived online status against the ping timeout."""
  while True:
    await asyncio.sleep(config.SWEEP_INTERVAL_SECONDS)
    try:
      sweep_once()
    except Exception as exc:
      print(f"[sweep] failed: {exc}")
