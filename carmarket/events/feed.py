"""
In-process event feed.

``EventFeed`` is the registry of connected live channels. It is created
with the application, handed to the ledger, and closed at shutdown.
Ledger operations call ``broadcast`` after their write region commits;
the frame is serialized once and offered to every channel. A channel that
cannot take it is dropped, nothing else is affected.

Broadcasts may come from worker threads while SSE responses are served on
the event loop, so the registry is guarded by a lock and ``QueueChannel``
hands frames to its loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import json
import threading
from typing import List, Optional, Protocol, Set

from ..utils.logger import get_logger
from .models import FeedEvent, PingEvent

logger = get_logger(__name__)

PING_INTERVAL_SECONDS = 30.0
CHANNEL_QUEUE_SIZE = 100


class ChannelClosed(Exception):
    """Delivery to a disconnected or overflowing channel."""


class Channel(Protocol):
    def send(self, frame: str) -> None: ...

    def close(self) -> None: ...


def format_sse(event: FeedEvent) -> str:
    """Server-Sent Events frame for ``event``."""
    data = json.dumps(event.payload(), separators=(",", ":"))
    return f"event: {event.event}\ndata: {data}\n\n"


class QueueChannel:
    """One SSE connection: a bounded queue drained by the response generator."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = CHANNEL_QUEUE_SIZE):
        self._loop = loop
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def send(self, frame: str) -> None:
        if self.closed:
            raise ChannelClosed("channel closed")
        try:
            self._loop.call_soon_threadsafe(self._put, frame)
        except RuntimeError as e:
            self.closed = True
            raise ChannelClosed(str(e))

    def _put(self, frame: Optional[str]) -> None:
        if self.closed and frame is not None:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            # slow consumer: stop feeding it and let the stream end
            self.closed = True
            self._drain_and_stop()

    def _drain_and_stop(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._loop.call_soon_threadsafe(self._drain_and_stop)
        except RuntimeError:
            pass

    async def receive(self) -> Optional[str]:
        """Next frame, or None once the channel is closed."""
        return await self._queue.get()


class EventFeed:
    """Registry of live channels with best-effort fan-out."""

    def __init__(self):
        self._channels: Set[Channel] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def subscribe(self, channel: Channel) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed("event feed is closed")
            self._channels.add(channel)
        logger.debug("Channel subscribed", subscribers=self.subscriber_count)

    def unsubscribe(self, channel: Channel) -> None:
        with self._lock:
            self._channels.discard(channel)

    def broadcast(self, event: FeedEvent) -> int:
        """Offer ``event`` to every channel; returns the number of deliveries."""
        frame = format_sse(event)
        with self._lock:
            channels: List[Channel] = list(self._channels)
        delivered = 0
        for channel in channels:
            try:
                channel.send(frame)
                delivered += 1
            except Exception as e:
                self.unsubscribe(channel)
                logger.debug("Dropped channel", event_name=event.event, error=str(e))
        return delivered

    async def run_keepalive(self, interval: float = PING_INTERVAL_SECONDS) -> None:
        """Broadcast a ping every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.broadcast(PingEvent())

    def close(self) -> None:
        """Close every channel and refuse new subscriptions."""
        with self._lock:
            channels = list(self._channels)
            self._channels.clear()
            self._closed = True
        for channel in channels:
            channel.close()
        logger.info("Event feed closed", channels=len(channels))
