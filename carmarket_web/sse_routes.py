"""
Live event feed over Server-Sent Events.

GET /sse streams ``purchase``, ``fund`` and ``ping`` events to the
authenticated client until it disconnects or the server shuts down.
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from carmarket.auth.models import User
from carmarket.events.feed import EventFeed, QueueChannel
from carmarket.utils.logger import get_logger

from .auth_middleware import get_services, require_login

logger = get_logger(__name__)

router = APIRouter(tags=["events"])


async def event_stream(feed: EventFeed, channel: QueueChannel, user_id: str) -> AsyncGenerator[str, None]:
    feed.subscribe(channel)
    logger.info("Live channel opened", user_id=user_id)
    try:
        yield ": connected\n\n"
        while True:
            frame = await channel.receive()
            if frame is None:
                break
            yield frame
    finally:
        feed.unsubscribe(channel)
        channel.close()
        logger.info("Live channel closed", user_id=user_id)


@router.get("/sse")
async def sse(request: Request, current_user: User = Depends(require_login)) -> StreamingResponse:
    channel = QueueChannel(asyncio.get_running_loop())
    return StreamingResponse(
        event_stream(get_services(request).feed, channel, current_user.id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
