"""
Status inference.

Turns one normalized event into an online/offline verdict and a display label.
Rules run in a fixed order and the first one that resolves wins:

  explicit-flag     boolean fields such as `isOnShift`
  vocabulary        known status codes ("NotWorking", "BusyMeterOnAccount", ...)
  keywords          free-text matches on status, event type and sub type
  shift-timestamps  a started time without an ended time, or the reverse

Which rules apply depends on the event kind. Pings only honour explicit flags
and otherwise count as a soft online signal. Status events always mean the
vehicle is being tracked, so they resolve online unless a flag or code says the
driver is not working.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from normalizer import (
  extract_event_type,
  extract_status_text,
  extract_sub_type,
  first_value,
)
from state import EventKind, Inference


@dataclass(frozen=True)
class VocabEntry:
  prefix: str
  online: Optional[bool]
  label: str
  requires: Optional[str] = None

  def matches(self, squashed: str) -> bool:
    if not squashed.startswith(self.prefix):
      return False
    return self.requires is None or self.requires in squashed


# Matched against the code lowercased with everything but letters and digits
# removed. More specific entries must come before the generic ones.
VOCABULARY: Tuple[VocabEntry, ...] = (
  VocabEntry("notworking", False, "Not Working"),
  VocabEntry("offshift", False, "Off Shift"),
  VocabEntry("offduty", False, "Off Duty"),
  VocabEntry("loggedoff", False, "Logged Off"),
  VocabEntry("loggedout", False, "Logged Off"),
  VocabEntry("signedoff", False, "Logged Off"),
  VocabEntry("suspended", False, "Suspended"),
  VocabEntry("busy", True, "Busy (Account)", requires="account"),
  VocabEntry("busy", True, "Busy (Cash)", requires="cash"),
  VocabEntry("busy", True, "Busy"),
  VocabEntry("clear", True, "Clear"),
  VocabEntry("free", True, "Clear"),
  VocabEntry("available", True, "Clear"),
  VocabEntry("dispatched", True, "Dispatched"),
  VocabEntry("joboffered", True, "Job Offered"),
  VocabEntry("enroute", True, "En Route"),
  VocabEntry("arrived", True, "Arrived"),
  VocabEntry("passengeronboard", True, "Passenger On Board"),
  VocabEntry("pob", True, "Passenger On Board"),
  VocabEntry("onbreak", None, "On Break"),
  VocabEntry("break", None, "On Break"),
  VocabEntry("away", None, "Away"),
  VocabEntry("noshow", None, "No Show"),
)

ONLINE_KEYWORDS = (
  "start",
  "logged in",
  "loggedin",
  "logged on",
  "loggedon",
  "logon",
  "signed on",
  "signedon",
  "on shift",
  "onshift",
  "online",
  "busy",
  "clear",
  "available",
  "working",
  "open",
)
OFFLINE_KEYWORDS = (
  "end",
  "logged out",
  "loggedout",
  "logged off",
  "loggedoff",
  "logoff",
  "signed off",
  "signedoff",
  "off shift",
  "offshift",
  "off duty",
  "offduty",
  "offline",
  "unavailable",
  "not working",
  "notworking",
  "closed",
)

EXPLICIT_FLAG_KEYS = (
  "online",
  "Online",
  "isOnline",
  "IsOnline",
  "isOnShift",
  "IsOnShift",
  "onShift",
  "OnShift",
)
SHIFT_START_KEYS = ("ShiftStart", "ShiftStartTime", "ShiftStarted", "StartedAt", "startedAt", "LoggedOnAt")
SHIFT_END_KEYS = ("ShiftEnd", "ShiftEndTime", "ShiftEnded", "EndedAt", "endedAt", "LoggedOffAt")


@dataclass(frozen=True)
class Signals:
  event: Dict[str, Any]
  code: Optional[str]
  entry: Optional[VocabEntry]
  texts: Tuple[str, ...]


def squash(text: str) -> str:
  return "".join(ch for ch in text.lower() if ch.isalnum())


def lookup_vocabulary(code: Optional[str]) -> Optional[VocabEntry]:
  if not code:
    return None
  squashed = squash(code)
  if not squashed:
    return None
  for entry in VOCABULARY:
    if entry.matches(squashed):
      return entry
  return None


def _as_bool(value: Any) -> Optional[bool]:
  if isinstance(value, bool):
    return value
  if isinstance(value, str):
    lowered = value.strip().lower()
    if lowered == "true":
      return True
    if lowered == "false":
      return False
  return None


def _explicit_flag(signals: Signals) -> Optional[bool]:
  for key in EXPLICIT_FLAG_KEYS:
    flag = _as_bool(signals.event.get(key))
    if flag is not None:
      return flag
  return None


def _vocabulary(signals: Signals) -> Optional[bool]:
  if signals.entry is None:
    return None
  return signals.entry.online


def _keywords(signals: Signals) -> Optional[bool]:
  online = False
  offline = False
  for text in signals.texts:
    lowered = text.lower()
    if any(word in lowered for word in OFFLINE_KEYWORDS):
      offline = True
    if any(word in lowered for word in ONLINE_KEYWORDS):
      online = True
  if offline:
    return False
  if online:
    return True
  return None


def _shift_timestamps(signals: Signals) -> Optional[bool]:
  started = first_value(signals.event, SHIFT_START_KEYS) is not None
  ended = first_value(signals.event, SHIFT_END_KEYS) is not None
  if ended:
    return False
  if started:
    return True
  return None


RULES: Tuple[Tuple[str, Callable[[Signals], Optional[bool]]], ...] = (
  ("explicit-flag", _explicit_flag),
  ("vocabulary", _vocabulary),
  ("keywords", _keywords),
  ("shift-timestamps", _shift_timestamps),
)

KIND_RULES: Dict[EventKind, Tuple[str, ...]] = {
  EventKind.PING: ("explicit-flag",),
  EventKind.STATUS: ("explicit-flag", "vocabulary"),
  EventKind.SHIFT: ("explicit-flag", "vocabulary", "keywords", "shift-timestamps"),
}


def collect_signals(event: Dict[str, Any], kind: EventKind) -> Signals:
  code = extract_status_text(event, kind)
  texts = tuple(
    text for text in (code, extract_event_type(event), extract_sub_type(event)) if text
  )
  return Signals(event=event, code=code, entry=lookup_vocabulary(code), texts=texts)


def display_label(code: Optional[str]) -> Optional[str]:
  """Friendly label for a raw status code, or the code itself."""
  entry = lookup_vocabulary(code)
  if entry is not None:
    return entry.label
  return code or None


def infer(event: Dict[str, Any], kind: EventKind) -> Inference:
  signals = collect_signals(event, kind)
  allowed = KIND_RULES[kind]

  rule_name = "unresolved"
  online: Optional[bool] = None
  for name, rule in RULES:
    if name not in allowed:
      continue
    online = rule(signals)
    if online is not None:
      rule_name = name
      break

  if kind == EventKind.PING:
    if online is None:
      return Inference(online=True, rule="ping-presence", soft=True)
    return Inference(online=online, rule=rule_name)

  if kind == EventKind.STATUS and online is not False:
    if online is None:
      rule_name = "active-tracking"
    online = True

  label = signals.entry.label if signals.entry is not None else signals.code
  return Inference(online=online, label=label, code=signals.code, rule=rule_name)
