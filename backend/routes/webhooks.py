"""
Webhook endpoints for the dispatch platform.
"""

import json
from typing import Any

from fastapi import APIRouter, Request

from auth import require_webhook_token
from services.ingest import ingest
from state import EventKind

router = APIRouter()


async def read_body(request: Request) -> Any:
  """Parse the request body, degrading to None when it is not usable."""
  content_type = request.headers.get("content-type", "")
  if content_type.startswith("application/x-www-form-urlencoded"):
    form = await request.form()
    return dict(form)
  raw = await request.body()
  if not raw.strip():
    return None
  try:
    return json.loads(raw)
  except ValueError as exc:
    print(f"[webhook] unparseable body on {request.url.path}: {exc}")
    return None


@router.post("/webhook/HackneyLocation")
async def hackney_location(request: Request):
  """Location pings: proof of life, no status text."""
  require_webhook_token(request)
  body = await read_body(request)
  return ingest(EventKind.PING, body).as_response()


@router.post("/webhook/Status")
async def vehicle_status(request: Request):
  """VehicleTracksChanged: busy / clear telemetry plus a ping."""
  require_webhook_token(request)
  body = await read_body(request)
  return ingest(EventKind.STATUS, body).as_response()


@router.post("/webhook/ShiftChange")
async def shift_change(request: Request):
  """Driver logon / logoff."""
  require_webhook_token(request)
  body = await read_body(request)
  return ingest(EventKind.SHIFT, body).as_response()
