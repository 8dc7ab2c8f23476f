"""
Upstream vehicle list proxy.

Pass-through GET against the dispatch platform's vehicle endpoint. Never
touches the status store.
"""

from typing import Any, Optional

import httpx

import config


class UpstreamError(Exception):
  """Upstream call failed; carries the status and body to hand back."""

  def __init__(self, status_code: int, body: str, passthrough: bool = False):
    super().__init__(f"upstream error {status_code}")
    self.status_code = status_code
    self.body = body
    self.passthrough = passthrough


def _as_bool(value: Any) -> bool:
  if isinstance(value, bool):
    return value
  if isinstance(value, (int, float)):
    return value != 0
  if isinstance(value, str):
    return value.strip().lower() in ("true", "1", "yes", "y")
  return False


def normalize_vehicles(data: Any, field: Optional[str] = None) -> Any:
  """Guarantee every vehicle object carries `field` as a real boolean."""
  field = field or config.UPSTREAM_BOOL_FIELD
  if not field:
    return data
  items = data
  if isinstance(data, dict):
    for key in ("data", "items", "Vehicles", "vehicles"):
      if isinstance(data.get(key), list):
        items = data[key]
        break
  if not isinstance(items, list):
    return data
  for vehicle in items:
    if isinstance(vehicle, dict):
      vehicle[field] = _as_bool(vehicle.get(field))
  return data


async def fetch_vehicles(client: Optional[httpx.AsyncClient] = None) -> Any:
  """Fetch the upstream vehicle list, raising UpstreamError on any failure."""
  if not config.AUTOCAB_KEY:
    raise UpstreamError(500, "missing_autocab_key")

  headers = {
    "Ocp-Apim-Subscription-Key": config.AUTOCAB_KEY,
    "Cache-Control": "no-cache",
  }
  try:
    if client is None:
      async with httpx.AsyncClient(timeout=config.UPSTREAM_TIMEOUT_SECONDS) as owned:
        response = await owned.get(config.AUTOCAB_VEHICLES_URL, headers=headers)
    else:
      response = await client.get(config.AUTOCAB_VEHICLES_URL, headers=headers)
  except httpx.TimeoutException:
    print(f"[upstream] timeout fetching {config.AUTOCAB_VEHICLES_URL}")
    raise UpstreamError(504, "upstream_timeout")
  except httpx.HTTPError as exc:
    print(f"[upstream] request failed: {exc}")
    raise UpstreamError(502, f"upstream_error: {exc}")

  if response.status_code >= 400:
    text = response.text
    print(f"[upstream] /vehicles error: {response.status_code} {text[:200]}")
    raise UpstreamError(
      response.status_code,
      text or f"Upstream error: {response.reason_phrase}",
      passthrough=True,
    )

  try:
    data = response.json()
  except ValueError:
    raise UpstreamError(502, "upstream_invalid_json")
  return normalize_vehicles(data)
