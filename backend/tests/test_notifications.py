"""Notification fan-out tests.

Redis is not required: the notifier's client is replaced with small fakes.
"""

import json

import pytest
import redis.asyncio as redis
from sqlalchemy import func, select

from conftest import RecordingNotifier, harvest_payload
from herbtrace.database import transaction
from herbtrace.main import app
from herbtrace.models.lot import Lot
from herbtrace.services.harvests import record_harvest
from herbtrace.services.notifications import (
    Notifier,
    RedisNotifier,
    SessionNotifier,
    build_event,
    get_notifier,
)
from test_end_to_end import HARVEST


class FakeRedis:
    def __init__(self):
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    async def aclose(self):
        pass


class BrokenRedis:
    async def publish(self, channel, message):
        raise redis.ConnectionError("Connection refused")


class StoreObservingNotifier(RecordingNotifier):
    """Records how many lots a fresh session can see when each event arrives."""

    def __init__(self, session_factory):
        super().__init__()
        self.session_factory = session_factory
        self.lot_counts: list[tuple[str, int]] = []

    async def publish(self, event_type, payload):
        async with self.session_factory() as session:
            count = await session.execute(select(func.count()).select_from(Lot))
            self.lot_counts.append((event_type, count.scalar()))
        await super().publish(event_type, payload)


@pytest.mark.unit
class TestBuildEvent:

    def test_envelope(self):
        event = build_event("lot.updated", {"lot_id": "abc"})
        assert event["type"] == "lot.updated"
        assert event["payload"] == {"lot_id": "abc"}
        assert "timestamp" in event

    def test_notifier_is_abstract(self):
        with pytest.raises(TypeError):
            Notifier()


@pytest.mark.asyncio
class TestRedisNotifier:

    async def test_publishes_json_envelope(self):
        notifier = RedisNotifier("redis://unused", "herbtrace:test")
        fake = FakeRedis()
        notifier._client = fake

        await notifier.publish("harvest.recorded", {"harvest_id": "h1"})

        channel, message = fake.published[0]
        assert channel == "herbtrace:test"
        event = json.loads(message)
        assert event["type"] == "harvest.recorded"
        assert event["payload"] == {"harvest_id": "h1"}

        await notifier.close()
        assert notifier._client is None

    async def test_redis_failure_is_swallowed(self):
        notifier = RedisNotifier("redis://unused", "herbtrace:test")
        notifier._client = BrokenRedis()

        # Must not raise
        await notifier.publish("lot.updated", {"lot_id": "abc"})

    async def test_mutation_succeeds_when_fanout_fails(self, db_session, farmer):
        notifier = RedisNotifier("redis://unused", "herbtrace:test")
        notifier._client = BrokenRedis()

        outcome = await record_harvest(db_session, farmer, harvest_payload(), notifier)

        assert outcome["lot"].farmer_completed is True
        assert outcome["harvest"].id


@pytest.mark.asyncio
class TestLotUpdatedEvent:

    async def test_payload(self, db_session, farmer, notifier):
        outcome = await record_harvest(db_session, farmer, harvest_payload(), notifier)

        event_type, payload = notifier.events[0]
        assert event_type == "lot.updated"
        assert payload["lot_id"] == outcome["lot"].id
        assert payload["action"] == "Harvest Added"
        assert payload["updated_by"] == "Farmer"
        assert payload["message"] == "Harvest Added by Farmer"


@pytest.mark.asyncio
class TestPublishAfterCommit:

    async def test_events_wait_for_commit(self, db_session, farmer, notifier):
        queued = SessionNotifier(db_session, notifier)

        async with transaction(db_session):
            await record_harvest(db_session, farmer, harvest_payload(), queued)
            assert notifier.events == []

        assert notifier.types() == ["lot.updated", "harvest.recorded"]

    async def test_rollback_drops_queued_events(self, db_session, farmer, notifier):
        queued = SessionNotifier(db_session, notifier)

        with pytest.raises(RuntimeError):
            async with transaction(db_session):
                await record_harvest(db_session, farmer, harvest_payload(), queued)
                raise RuntimeError("commit never reached")

        assert notifier.events == []
        count = await db_session.execute(select(func.count()).select_from(Lot))
        assert count.scalar() == 0

    async def test_observers_see_committed_lot(self, client, session_factory, farmer_headers):
        observer = StoreObservingNotifier(session_factory)
        app.dependency_overrides[get_notifier] = lambda: observer

        resp = await client.post("/api/harvests/", headers=farmer_headers, json=HARVEST)

        assert resp.status_code == 201
        assert observer.lot_counts == [("lot.updated", 1), ("harvest.recorded", 1)]

    async def test_failed_request_publishes_nothing(self, client, notifier, lab_headers):
        resp = await client.post("/api/lab/test-results", headers=lab_headers, json={
            "harvest_id": "missing", "test_type": "purity", "quality_grade": "A",
        })

        assert resp.status_code == 404
        assert notifier.events == []
