"""
Debug routes for development/troubleshooting.
"""

from fastapi import APIRouter

import config
from helpers import iso_from_ts
from services.broadcaster import publisher
from services.persistence import saver
from state import stats, store

router = APIRouter()


@router.get("/stats")
def get_stats():
  """Return webhook counters and runtime state."""
  now = store.clock()
  records = store.read_all()
  online = sum(1 for rec in records if store.is_online(rec, now))
  return {
    "stats": {
      **stats,
      "last_rx_ts": iso_from_ts(stats.get("last_rx_ts")),
    },
    "vehicles": len(records),
    "online": online,
    "subscribers": len(publisher),
    "save_pending": saver.scheduled,
    "ping_timeout_seconds": store.timeout_seconds,
    "sweep_interval_seconds": config.SWEEP_INTERVAL_SECONDS,
    "webhook_auth": bool(config.WEBHOOK_TOKEN),
    "server_time": iso_from_ts(now),
  }
