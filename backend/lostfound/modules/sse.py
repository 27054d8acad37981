"""Server-Sent Events framing shared by the notification and conversation streams."""
from __future__ import annotations

import json
import time
from queue import Empty
from typing import Iterator

from flask import Response, stream_with_context

from .notifications.bus import subscribe, unsubscribe

# Keep below gunicorn's timeout so idle streams still yield periodically
KEEPALIVE_SECONDS = 15


def event_stream(channel: str, event_name: str | None = None) -> Iterator[str]:
    """Yield SSE frames for ``channel``; subscribed only while iterated."""
    q = subscribe(channel)
    try:
        yield ": connected\n\n"
        while True:
            try:
                evt = q.get(timeout=KEEPALIVE_SECONDS)
            except Empty:
                yield "event: ping\n" + f"data: {json.dumps({'ts': int(time.time())})}\n\n"
                continue
            name = event_name or evt.get("type", "message")
            yield f"event: {name}\n" + f"data: {json.dumps(evt, default=str)}\n\n"
    finally:
        unsubscribe(channel, q)


def sse_response(channel: str, event_name: str | None = None) -> Response:
    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return Response(stream_with_context(event_stream(channel, event_name)), headers=headers)
