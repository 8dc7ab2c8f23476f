"""
Live status broadcaster.

Keeps the registry of connected stream channels (SSE and WebSocket) and fans
status changes and heartbeats out to them. Every channel has its own bounded
queue, so a slow or vanished client only ever loses its own channel.
"""

import asyncio
import json
import threading
from typing import Any, Dict, Optional, Set

import config
from helpers import status_listing, status_payload
from state import StatusRecord, store

Message = Dict[str, Any]


class Channel:
  """One subscriber's outbound queue."""

  def __init__(self, maxsize: int = 0):
    self.queue: "asyncio.Queue[Optional[Message]]" = asyncio.Queue(maxsize=max(1, maxsize or config.STREAM_QUEUE_MAX))
    self.closed = False

  def offer(self, message: Message) -> bool:
    if self.closed:
      return False
    try:
      self.queue.put_nowait(message)
    except asyncio.QueueFull:
      return False
    return True

  async def get(self) -> Optional[Message]:
    """Next message, or None once the channel has been closed."""
    return await self.queue.get()

  def close(self) -> None:
    if self.closed:
      return
    self.closed = True
    while not self.queue.empty():
      self.queue.get_nowait()
    self.queue.put_nowait(None)


class Publisher:
  """Registry of channels plus fan-out.

  Must be driven from the event loop thread; queue writes are not thread-safe.
  Never call it while holding the store lock.
  """

  def __init__(self):
    self._lock = threading.Lock()
    self._channels: Set[Channel] = set()

  def __len__(self) -> int:
    with self._lock:
      return len(self._channels)

  def subscribe(self, maxsize: int = 0) -> Channel:
    """Register a channel whose first message is a full snapshot."""
    channel = Channel(maxsize)
    with self._lock:
      channel.offer({"type": "snapshot", "data": status_listing(store.read_all())})
      self._channels.add(channel)
    return channel

  def unsubscribe(self, channel: Channel) -> None:
    channel.close()
    with self._lock:
      self._channels.discard(channel)

  def publish(self, message: Message) -> int:
    """Offer a message to every channel, dropping the ones that refuse it."""
    with self._lock:
      dead = [channel for channel in self._channels if not channel.offer(message)]
      for channel in dead:
        channel.close()
        self._channels.discard(channel)
      delivered = len(self._channels)
    if dead:
      print(f"[stream] dropped {len(dead)} subscriber(s), {delivered} remaining")
    return delivered

  def publish_record(self, record: StatusRecord, now: Optional[float] = None) -> int:
    payload = status_payload(record, now)
    store.mark_broadcast(record.callsign, payload["online"])
    return self.publish({"type": "status", "data": payload})

  def publish_heartbeat(self) -> int:
    return self.publish({"type": "heartbeat", "ts": int(store.clock() * 1000)})


def encode_sse(message: Message) -> str:
  """Render a message as a Server-Sent Events frame."""
  if message.get("type") == "heartbeat":
    return f":heartbeat {message.get('ts')}\n\n"
  return f"event: {message.get('type')}\ndata:{json.dumps(message.get('data'))}\n\n"


def encode_ws(message: Message) -> str:
  return json.dumps(message)


publisher = Publisher()


async def heartbeat_loop() -> None:
  """Periodically send keep-alive markers so idle proxies keep streams open."""
  if config.HEARTBEAT_SECONDS <= 0:
    return
  while True:
    await asyncio.sleep(config.HEARTBEAT_SECONDS)
    publisher.publish_heartbeat()
