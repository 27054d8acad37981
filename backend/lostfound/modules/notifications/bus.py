from __future__ import annotations

from queue import Queue, Full
from threading import Lock
from typing import Any, Dict, List

# Simple in-memory pub/sub for SSE. Not suitable for multi-process deployments.
# Channels are plain strings: user_channel(...) for notifications,
# conversation_channel(...) for live chat fan-out.
_subs: dict[str, List[Queue]] = {}
_lock = Lock()


def user_channel(user_id: int) -> str:
    return f"user:{int(user_id)}"


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def subscribe(channel: str) -> Queue:
    q: Queue = Queue(maxsize=1000)
    with _lock:
        _subs.setdefault(channel, []).append(q)
    return q


def unsubscribe(channel: str, q: Queue) -> None:
    with _lock:
        arr = _subs.get(channel)
        if not arr:
            return
        try:
            arr.remove(q)
        except ValueError:
            pass
        if not arr:
            _subs.pop(channel, None)


def subscriber_count(channel: str) -> int:
    with _lock:
        return len(_subs.get(channel, []))


def publish(channel: str, event: Dict[str, Any]) -> int:
    """Best-effort fan-out; returns how many subscribers received the event."""
    with _lock:
        arr = list(_subs.get(channel, []))
    delivered = 0
    for q in arr:
        try:
            q.put_nowait(event)
            delivered += 1
        except Full:
            # slow consumer; drop rather than block the publisher
            pass
    return delivered
