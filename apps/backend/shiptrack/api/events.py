from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from shiptrack.realtime.topics import validate_topic
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


router = APIRouter(prefix="/api", tags=["events"])


def _sse(event: str, data: Any) -> str:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n"


@router.get("/events")
async def events(
    request: Request,
    topic: list[str] = Query(..., description="Rooms to listen to; repeat the parameter for several"),
    runtime: Runtime = Depends(get_runtime),
):
    """SSE endpoint for listen-only pages (e.g. public tracking).

    Joins the given rooms when the stream starts and leaves them all when the
    client goes away. Live events only, nothing is replayed.
    """
    topics = [validate_topic(t) for t in topic]
    gateway = runtime.gateway

    logger.info(
        "sse connect topics=%s client=%s",
        topics,
        request.client.host if request.client else None,
    )

    async def gen() -> AsyncIterator[bytes]:
        conn = gateway.connect()
        try:
            for t in topics:
                gateway.join(conn.id, t)
            # Periodically wake up to detect disconnect and to keep the connection alive.
            while True:
                if await request.is_disconnected():
                    logger.info("sse disconnected conn=%s", conn.id)
                    return
                try:
                    msg = await asyncio.wait_for(conn.queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield b": keep-alive\n\n"
                    continue
                yield _sse(msg["event"], msg["data"]).encode("utf-8")
        finally:
            gateway.disconnect(conn.id)

    return StreamingResponse(gen(), media_type="text/event-stream")
