"""In-process realtime channel for package changes.

Listeners subscribe per conversation id and receive change events on an
asyncio.Queue:

    {"table": "mystery_packages", "type": "INSERT" | "UPDATE", "record": {...}}

publish() never blocks; queues are unbounded.
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

_subscribers: dict[str, list[asyncio.Queue]] = {}


def subscribe(conversation_id: str) -> asyncio.Queue:
    queue: asyncio.Queue = asyncio.Queue()
    _subscribers.setdefault(conversation_id, []).append(queue)
    return queue


def unsubscribe(conversation_id: str, queue: asyncio.Queue) -> None:
    queues = _subscribers.get(conversation_id, [])
    if queue in queues:
        queues.remove(queue)
    if not queues:
        _subscribers.pop(conversation_id, None)


def subscriber_count(conversation_id: str) -> int:
    return len(_subscribers.get(conversation_id, []))


def publish(conversation_id: str, event: dict[str, Any]) -> None:
    """Deliver an event to every listener of a conversation."""
    queues = list(_subscribers.get(conversation_id, []))
    if queues:
        logger.debug("publish %s event to %d listener(s) for %s",
                     event.get("type"), len(queues), conversation_id)
    for queue in queues:
        queue.put_nowait(event)
