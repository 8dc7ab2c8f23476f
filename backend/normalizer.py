"""
Webhook payload normalization.

The dispatch platform has sent the same events in many shapes over time. This
module flattens a request body into a list of event objects and pulls the
callsign, timestamp and raw status text out of each one.
"""

from typing import Any, Dict, List, Optional

from helpers import parse_ts
from state import EventKind

# Keys that may wrap the event list, checked in order.
LIST_KEYS = (
  "data",
  "items",
  "payload",
  "VehicleTracks",
  "vehicleTracks",
  "Shifts",
  "shifts",
  "Events",
  "events",
)

CALLSIGN_KEYS = (
  "callsign",
  "callSign",
  "Callsign",
  "CallSign",
  "code",
  "Code",
  "mdtId",
  "mdtID",
  "MdtId",
  "vehicleCode",
  "VehicleCode",
  "driverCode",
  "DriverCode",
)
NESTED_OBJECT_KEYS = ("Vehicle", "vehicle", "Driver", "driver")
NESTED_CALLSIGN_KEYS = ("Callsign", "callsign", "callSign", "CallSign", "code", "Code")

TIMESTAMP_KEYS = (
  "Timestamp",
  "timestamp",
  "time",
  "Time",
  "ModifiedDate",
  "modifiedDate",
  "EventTime",
  "eventTime",
)

STATUS_TEXT_KEYS = {
  EventKind.PING: (),
  EventKind.STATUS: ("VehicleStatus", "vehicleStatus", "Status", "status"),
  EventKind.SHIFT: (
    "ShiftStatus",
    "shiftStatus",
    "Status",
    "status",
    "DriverStatus",
    "driverStatus",
  ),
}

EVENT_TYPE_KEYS = ("EventType", "eventType", "Event", "event")
SUB_TYPE_KEYS = ("SubEventType", "subEventType", "SubType", "subType")


def _present(value: Any) -> bool:
  if value is None or isinstance(value, bool):
    return False
  if isinstance(value, (dict, list)):
    return False
  return bool(str(value).strip())


def first_value(obj: Dict[str, Any], keys: Any) -> Optional[Any]:
  """Return the first usable scalar found under `keys`."""
  for key in keys:
    value = obj.get(key)
    if _present(value):
      return value
  return None


def coerce_payload_to_list(body: Any) -> List[Any]:
  """Turn any supported body shape into a list of events."""
  if body is None:
    return []
  if isinstance(body, list):
    return list(body)
  if isinstance(body, dict):
    if not body:
      return []
    for key in LIST_KEYS:
      value = body.get(key)
      if isinstance(value, list):
        return list(value)
    return [body]
  if isinstance(body, str) and not body.strip():
    return []
  return [body]


def extract_callsign(event: Any) -> Optional[str]:
  """Find the callsign in an event, top-level aliases first."""
  if not isinstance(event, dict):
    return None
  direct = first_value(event, CALLSIGN_KEYS)
  if direct is not None:
    return str(direct)
  for key in NESTED_OBJECT_KEYS:
    nested = event.get(key)
    if not isinstance(nested, dict):
      continue
    value = first_value(nested, NESTED_CALLSIGN_KEYS)
    if value is not None:
      return str(value)
  return None


def normalize_callsign(value: Any) -> Optional[str]:
  if value is None:
    return None
  key = str(value).strip().upper()
  return key or None


def extract_timestamp(event: Dict[str, Any]) -> Optional[float]:
  for key in TIMESTAMP_KEYS:
    ts = parse_ts(event.get(key))
    if ts is not None:
      return ts
  return None


def extract_status_text(event: Dict[str, Any], kind: EventKind) -> Optional[str]:
  value = first_value(event, STATUS_TEXT_KEYS[kind])
  return str(value).strip() if value is not None else None


def extract_event_type(event: Dict[str, Any]) -> Optional[str]:
  value = first_value(event, EVENT_TYPE_KEYS)
  return str(value) if value is not None else None


def extract_sub_type(event: Dict[str, Any]) -> Optional[str]:
  value = first_value(event, SUB_TYPE_KEYS)
  return str(value) if value is not None else None
