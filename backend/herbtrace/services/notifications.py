"""Notification fan-out — broadcasts what changed after every mutation.

Events are published to a Redis pub/sub channel as a JSON envelope:

    {"type": "lot.updated", "payload": {...}, "timestamp": "2026-10-19T08:15:00"}

Delivery is at-most-once and fire-and-forget: a Redis failure is logged
and dropped, and the mutation that triggered it still succeeds.

Within a request, services publish through a `SessionNotifier`, which
holds each event on the database session until the transaction commits.
Observers therefore only hear about state they can read back, and a
rolled-back request publishes nothing.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import partial
from typing import Any, Optional

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.config import settings
from herbtrace.database import after_commit, get_db

logger = logging.getLogger(__name__)


def build_event(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": event_type,
        "payload": payload,
        "timestamp": datetime.utcnow().isoformat(),
    }


class Notifier(ABC):
    """Interface for fan-out backends."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        ...

    async def lot_updated(self, lot, action: str) -> None:
        """Broadcast the generic lot-changed event every role listens to."""
        await self.publish(
            "lot.updated",
            {
                "lot_id": lot.id,
                "lookup_code": lot.lookup_code,
                "status": lot.status,
                "action": action,
                "updated_by": lot.updated_by,
                "message": f"{action} by {lot.updated_by or 'System'}",
            },
        )


class RedisNotifier(Notifier):
    def __init__(self, redis_url: str, channel: str):
        self.redis_url = redis_url
        self.channel = channel
        self._client: Optional[redis.Redis] = None

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
        return self._client

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        event = build_event(event_type, payload)
        try:
            client = await self._get_client()
            receivers = await client.publish(
                self.channel, json.dumps(event, default=str)
            )
            logger.debug(f"Published {event_type} to {receivers} subscriber(s)")
        except redis.RedisError as e:
            logger.warning(f"Redis error (dropping {event_type} event): {e}")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


class SessionNotifier(Notifier):
    """Defers every event to `backend` until `session` commits."""

    def __init__(self, session: AsyncSession, backend: Notifier):
        self.session = session
        self.backend = backend

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        after_commit(self.session, partial(self.backend.publish, event_type, payload))


# Process-wide notifier
_notifier: Optional[RedisNotifier] = None


def get_notifier() -> Notifier:
    """FastAPI dependency returning the shared Redis notifier."""
    global _notifier
    if _notifier is None:
        _notifier = RedisNotifier(settings.redis_url, settings.notification_channel)
    return _notifier


def get_session_notifier(
    db: AsyncSession = Depends(get_db),
    backend: Notifier = Depends(get_notifier),
) -> Notifier:
    """FastAPI dependency: the request's notifier, publishing after commit."""
    return SessionNotifier(db, backend)


async def close_notifier() -> None:
    """Close the Redis connection (call on app shutdown)."""
    global _notifier
    if _notifier:
        await _notifier.close()
        _notifier = None
