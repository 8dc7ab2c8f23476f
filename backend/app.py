"""
Fleet Live Status - FastAPI Application

Receives dispatch webhooks, derives per-callsign online status and streams
changes to connected boards.
"""

import asyncio
from typing import List

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from config import PING_TIMEOUT_MINUTES, PORT, PUBLIC_DIR, WEBHOOK_TOKEN
from routes.api import router as api_router
from routes.debug import router as debug_router
from routes.static import router as static_router
from routes.stream import router as stream_router
from routes.webhooks import router as webhook_router
from services.broadcaster import heartbeat_loop
from services.persistence import load_state, saver
from services.reaper import reaper

# =========================
# App Setup
# =========================
app = FastAPI(title="Fleet Live Status", version="1.0.0")
app.mount("/static", StaticFiles(directory=PUBLIC_DIR, check_dir=False), name="static")

# Include routers
app.include_router(static_router)
app.include_router(api_router)
app.include_router(stream_router)
app.include_router(webhook_router)
app.include_router(debug_router)

background_tasks: List[asyncio.Task] = []


# =========================
# Startup / Shutdown
# =========================
@app.on_event("startup")
async def startup():
  """Load persisted state and start background tasks."""
  load_state()

  print(f"[startup] online timeout set to {PING_TIMEOUT_MINUTES:g} minute(s)")
  if not WEBHOOK_TOKEN:
    print("[startup] WEBHOOK_TOKEN not set; webhooks are unauthenticated")

  background_tasks.append(asyncio.create_task(reaper()))
  background_tasks.append(asyncio.create_task(heartbeat_loop()))


@app.on_event("shutdown")
async def shutdown():
  """Stop background tasks and write any unsaved state."""
  for task in background_tasks:
    task.cancel()
  background_tasks.clear()
  await saver.wait()
  saver.flush()


if __name__ == "__main__":
  uvicorn.run(app, host="0.0.0.0", port=PORT)
