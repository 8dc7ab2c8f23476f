"""
Static page and health routes.
"""

import os

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse

from config import PUBLIC_DIR

router = APIRouter()


@router.get("/")
def root():
  """Serve the status board page."""
  html_path = os.path.join(PUBLIC_DIR, "index.html")
  if not os.path.exists(html_path):
    return JSONResponse(status_code=404, content={"detail": "not_found"})
  return FileResponse(html_path)


@router.get("/healthz")
def healthz():
  return {"ok": True}
