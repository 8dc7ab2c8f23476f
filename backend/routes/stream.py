"""
Live status streams: Server-Sent Events and WebSocket.

Both deliver a snapshot first, then one message per status change, plus
heartbeats.
"""

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from services.broadcaster import Channel, encode_sse, encode_ws, publisher

router = APIRouter()

SSE_HEADERS = {
  "Cache-Control": "no-cache",
  "Connection": "keep-alive",
  "X-Accel-Buffering": "no",
}


async def sse_frames(channel: Channel):
  try:
    while True:
      message = await channel.get()
      if message is None:
        break
      yield encode_sse(message)
  finally:
    publisher.unsubscribe(channel)


@router.get("/api/status/stream")
async def status_stream():
  """SSE stream of status changes."""
  channel = publisher.subscribe()
  return StreamingResponse(sse_frames(channel), media_type="text/event-stream", headers=SSE_HEADERS)


@router.websocket("/ws")
async def ws_endpoint(ws: WebSocket):
  """WebSocket stream of status changes."""
  await ws.accept()
  channel = publisher.subscribe()

  async def watch_disconnect() -> None:
    try:
      while True:
        await ws.receive_text()
    except (WebSocketDisconnect, RuntimeError):
      pass
    finally:
      publisher.unsubscribe(channel)

  watcher = asyncio.create_task(watch_disconnect())
  try:
    while True:
      message = await channel.get()
      if message is None:
        break
      await ws.send_text(encode_ws(message))
  except (WebSocketDisconnect, RuntimeError):
    pass
  finally:
    publisher.unsubscribe(channel)
    watcher.cancel()
