"""
API routes for vehicle status and the upstream vehicle list.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from helpers import status_listing
from services.upstream import UpstreamError, fetch_vehicles
from state import store

router = APIRouter()


@router.get("/api/status")
def api_status():
  """Return every known callsign with its derived online status."""
  return status_listing(store.read_all())


@router.get("/api/vehicles")
async def api_vehicles():
  """Proxy the upstream vehicle list."""
  try:
    data = await fetch_vehicles()
  except UpstreamError as exc:
    if exc.passthrough:
      return Response(content=exc.body, status_code=exc.status_code, media_type="text/plain")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.body})
  return data
