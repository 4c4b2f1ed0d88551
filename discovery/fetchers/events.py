"""Fetch event publishing for observability.

The manager reports request lifecycle events to an optional sink, any
callable taking ``(event, payload)``:

- ``request.start``: url, source, strategy, chain
- ``request.stop``: url, source, adapter, status_code, attempts, blocked_by, duration_ms
- ``request.exception``: url, source, reason, error, attempts, duration_ms
- ``blocked``: url, source, adapter, blocking_type, status_code, retry_after
"""

from __future__ import annotations

import json
import os
from typing import Any, Callable

import redis
from loguru import logger

EventSink = Callable[[str, dict[str, Any]], None]

DEFAULT_CHANNEL = "fetch:events"


def get_redis_client():
    """Get a synchronous Redis client from REDIS_HOST / REDIS_PORT."""
    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", 6379))
    return redis.Redis(host=host, port=port, db=0)


class RedisEventSink:
    """Publish fetch events as JSON on a Redis pub/sub channel.

    Non-critical: publish failures are logged and never reach the caller.
    """

    def __init__(self, client=None, channel: str | None = None):
        self._client = client
        self.channel = channel or os.environ.get("FETCH_EVENTS_CHANNEL", DEFAULT_CHANNEL)

    @property
    def client(self):
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        try:
            message = json.dumps({"event": event, "data": payload}, default=str)
            self.client.publish(self.channel, message)
        except Exception as exc:
            logger.warning(f"Failed to publish fetch event {event}: {exc}")


def emit(sink: EventSink | None, event: str, payload: dict[str, Any]) -> None:
    """Deliver *event* to *sink*, if any. Sink errors are logged, not raised."""
    if sink is None:
        return
    try:
        sink(event, payload)
    except Exception as exc:
        logger.warning(f"Fetch event sink failed on {event}: {exc}")
