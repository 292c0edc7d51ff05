"""
Integration tests against a live Redis server.

Run with ``python run_tests.py --integration``; tests skip when Redis is
not reachable at REDIS_URL (default redis://localhost:6379/15).
"""
import os
import uuid
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from redis.exceptions import RedisError

from channel_registry import ChannelNotFoundError, RedisChannelRegistry, RegistryError
from health_scheduler import HealthScheduler
from liveness_policy import LivenessPolicy
from models import ChannelHealth, SweepResult
from fakes import ScriptedProbe, make_channel

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/15")

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def registry():
    prefix = f"channel-health-test:{uuid.uuid4().hex}:"
    registry = RedisChannelRegistry(redis_url=REDIS_URL, key_prefix=prefix)
    try:
        await registry.connect()
    except RegistryError as e:
        await registry.close()
        pytest.skip(f"Redis not available: {e}")

    yield registry

    try:
        keys = [key async for key in registry.redis_client.scan_iter(match=f"{prefix}*")]
        if keys:
            await registry.redis_client.delete(*keys)
    except RedisError:
        pass
    await registry.close()


class TestRedisChannelRegistry:
    """Round trips through a real Redis server"""

    @pytest.mark.asyncio
    async def test_register_and_read_back(self, registry):
        await registry.register_channel(make_channel("ch-1", name="Addis TV"))

        record = await registry.get_channel_by_id("ch-1")

        assert record.channel.name == "Addis TV"
        assert record.health == ChannelHealth()

    @pytest.mark.asyncio
    async def test_reregister_keeps_health(self, registry):
        await registry.register_channel(make_channel("ch-1", name="Old"))
        await registry.upsert_channel_health("ch-1", {"is_online": False, "consecutive_failures": 3})

        record = await registry.register_channel(make_channel("ch-1", name="New"))

        assert record.channel.name == "New"
        assert record.health.consecutive_failures == 3

    @pytest.mark.asyncio
    async def test_staleness_query_uses_checked_index(self, registry):
        now = datetime.now(timezone.utc)
        for channel_id in ("never", "stale", "fresh"):
            await registry.register_channel(make_channel(channel_id))
        await registry.upsert_channel_health("stale", {"last_checked": now - timedelta(hours=5)})
        await registry.upsert_channel_health("fresh", {"last_checked": now - timedelta(minutes=10)})

        due = await registry.get_channels_needing_check(2)

        assert sorted(r.id for r in due) == ["never", "stale"]

    @pytest.mark.asyncio
    async def test_last_checked_is_monotonic(self, registry):
        now = datetime.now(timezone.utc)
        await registry.register_channel(make_channel("ch-1"))
        await registry.upsert_channel_health("ch-1", {"last_checked": now})
        await registry.upsert_channel_health("ch-1", {"last_checked": now - timedelta(hours=1)})

        record = await registry.get_channel_by_id("ch-1")
        assert record.health.last_checked == now

    @pytest.mark.asyncio
    async def test_filtered_reads(self, registry):
        await registry.register_channel(make_channel("ch-1", name="Alpha"))
        await registry.register_channel(make_channel("ch-2", name="Beta"))
        await registry.upsert_channel_health("ch-1", {"is_online": False})
        await registry.set_validated("ch-2", True)

        assert [r.id for r in await registry.list_online_channels()] == ["ch-2"]
        assert [r.id for r in await registry.list_validated_channels()] == ["ch-2"]

    @pytest.mark.asyncio
    async def test_unknown_channel(self, registry):
        assert await registry.get_channel_by_id("missing") is None
        with pytest.raises(ChannelNotFoundError):
            await registry.upsert_channel_health("missing", {"is_online": False})

    @pytest.mark.asyncio
    async def test_sweep_against_redis(self, registry):
        for channel_id in ("ch-1", "ch-2", "ch-3"):
            await registry.register_channel(make_channel(channel_id))
        await registry.upsert_channel_health("ch-3", {"consecutive_failures": 2})
        probe = ScriptedProbe(scripts={"http://streams.example.com/ch-3/index.m3u8": False})
        scheduler = HealthScheduler(registry, probe, policy=LivenessPolicy(3), batch_delay=0)

        result = await scheduler.run_sweep()

        assert result == SweepResult(checked=3, online=2, offline=1)
        assert await registry.get_channels_needing_check(2) == []
