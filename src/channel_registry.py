"""
Durable store of channel records and their health state.

Two backends share one interface: an in-memory registry for single-process
deployments and tests, and a Redis-backed registry that several workers can
share.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from models import Channel, ChannelHealth, ChannelRecord, HEALTH_FIELDS, utc_now

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """The backing store could not be read or written."""


class ChannelNotFoundError(LookupError):
    def __init__(self, channel_id: str):
        super().__init__(f"Channel not found: {channel_id}")
        self.channel_id = channel_id


def merge_health(current: ChannelHealth, fields: Mapping[str, Any]) -> ChannelHealth:
    """Apply a partial health update, keeping ``last_checked`` non-decreasing."""
    unknown = set(fields) - HEALTH_FIELDS
    if unknown:
        raise ValueError(f"Not health fields: {', '.join(sorted(unknown))}")

    update = dict(fields)
    last_checked = update.get("last_checked")
    if last_checked is None:
        update.pop("last_checked", None)
    elif current.last_checked is not None and last_checked < current.last_checked:
        update["last_checked"] = current.last_checked

    return ChannelHealth.model_validate({**current.model_dump(), **update})


class ChannelRegistry(ABC):
    backend = "abstract"

    @abstractmethod
    async def register_channel(self, channel: Channel) -> ChannelRecord:
        """Create a channel with default health, or refresh metadata of an existing one."""

    @abstractmethod
    async def get_channel_by_id(self, channel_id: str) -> Optional[ChannelRecord]:
        ...

    @abstractmethod
    async def get_channels_needing_check(self, older_than_hours: float) -> List[ChannelRecord]:
        """Channels never checked, or last checked before the cutoff."""

    @abstractmethod
    async def upsert_channel_health(self, channel_id: str, fields: Mapping[str, Any]) -> ChannelRecord:
        ...

    @abstractmethod
    async def list_all_channels(self) -> List[ChannelRecord]:
        ...

    @abstractmethod
    async def set_validated(self, channel_id: str, validated: bool) -> ChannelRecord:
        ...

    async def list_online_channels(self) -> List[ChannelRecord]:
        return [r for r in await self.list_all_channels() if r.health.is_online]

    async def list_validated_channels(self) -> List[ChannelRecord]:
        return [r for r in await self.list_all_channels() if r.health.validated]

    async def connect(self):
        pass

    async def close(self):
        pass


class InMemoryChannelRegistry(ChannelRegistry):
    backend = "memory"

    def __init__(self):
        self._records: Dict[str, ChannelRecord] = {}

    async def register_channel(self, channel: Channel) -> ChannelRecord:
        existing = self._records.get(channel.id)
        if existing:
            record = existing.model_copy(update={"channel": channel})
        else:
            record = ChannelRecord(channel=channel)
        self._records[channel.id] = record
        return record.model_copy(deep=True)

    async def get_channel_by_id(self, channel_id: str) -> Optional[ChannelRecord]:
        record = self._records.get(channel_id)
        return record.model_copy(deep=True) if record else None

    async def get_channels_needing_check(self, older_than_hours: float) -> List[ChannelRecord]:
        cutoff = utc_now() - timedelta(hours=older_than_hours)
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if record.health.last_checked is None or record.health.last_checked < cutoff
        ]

    async def upsert_channel_health(self, channel_id: str, fields: Mapping[str, Any]) -> ChannelRecord:
        record = self._records.get(channel_id)
        if record is None:
            raise ChannelNotFoundError(channel_id)

        health = merge_health(record.health, fields)
        record = record.model_copy(update={"health": health})
        self._records[channel_id] = record
        return record.model_copy(deep=True)

    async def list_all_channels(self) -> List[ChannelRecord]:
        records = sorted(self._records.values(), key=lambda r: r.channel.name)
        return [record.model_copy(deep=True) for record in records]

    async def set_validated(self, channel_id: str, validated: bool) -> ChannelRecord:
        record = self._records.get(channel_id)
        if record is None:
            raise ChannelNotFoundError(channel_id)

        health = record.health.model_copy(update={"validated": validated})
        record = record.model_copy(update={"health": health})
        self._records[channel_id] = record
        return record.model_copy(deep=True)


# Redis hash encoding

def _encode_bool(value: bool) -> str:
    return "1" if value else "0"


def health_to_hash(health: ChannelHealth, fields=None) -> Dict[str, str]:
    encoded = {
        "is_online": _encode_bool(health.is_online),
        "consecutive_failures": str(health.consecutive_failures),
        "last_checked": health.last_checked.isoformat() if health.last_checked else "",
        "validated": _encode_bool(health.validated),
    }
    if fields is not None:
        encoded = {k: v for k, v in encoded.items() if k in fields}
    return encoded


def record_from_hash(data: Mapping[str, str]) -> ChannelRecord:
    channel = Channel(
        id=data["id"],
        name=data.get("name", ""),
        country=data.get("country", ""),
        group=data.get("group", ""),
        source_url=data.get("source_url", ""),
    )
    last_checked = data.get("last_checked") or None
    health = ChannelHealth(
        is_online=data.get("is_online", "1") == "1",
        consecutive_failures=int(data.get("consecutive_failures") or 0),
        last_checked=datetime.fromisoformat(last_checked) if last_checked else None,
        validated=data.get("validated", "0") == "1",
    )
    return ChannelRecord(channel=channel, health=health)


class RedisChannelRegistry(ChannelRegistry):
    """
    Redis-backed registry.

    Each channel is a hash at ``{prefix}channel:{id}``. The sorted set
    ``{prefix}channels:checked`` indexes every channel by its last-checked
    epoch seconds (0 for never checked), which makes the staleness query a
    single range lookup.
    """

    backend = "redis"

    def __init__(self, redis_url: str = "redis://localhost:6379/0", key_prefix: str = "channel-health:",
                 client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.redis_client = client or redis.from_url(redis_url, decode_responses=True)

    def _channel_key(self, channel_id: str) -> str:
        return f"{self.key_prefix}channel:{channel_id}"

    @property
    def _checked_key(self) -> str:
        return f"{self.key_prefix}channels:checked"

    @asynccontextmanager
    async def _storage_errors(self, action: str):
        try:
            yield
        except RedisError as e:
            raise RegistryError(f"Redis {action} failed: {e}") from e

    async def connect(self):
        """Verify the Redis connection"""
        async with self._storage_errors("ping"):
            await self.redis_client.ping()
        logger.info(f"Channel registry connected to Redis at {self.redis_url}")

    async def close(self):
        await self.redis_client.aclose()

    async def _fetch_records(self, channel_ids: List[str]) -> List[ChannelRecord]:
        if not channel_ids:
            return []
        async with self.redis_client.pipeline(transaction=False) as pipe:
            for channel_id in channel_ids:
                pipe.hgetall(self._channel_key(channel_id))
            rows = await pipe.execute()
        return [record_from_hash(row) for row in rows if row]

    async def register_channel(self, channel: Channel) -> ChannelRecord:
        key = self._channel_key(channel.id)
        async with self._storage_errors("register"):
            mapping = {
                "id": channel.id,
                "name": channel.name,
                "country": channel.country,
                "group": channel.group,
                "source_url": channel.source_url,
            }
            if not await self.redis_client.exists(key):
                mapping.update(health_to_hash(ChannelHealth()))

            async with self.redis_client.pipeline(transaction=False) as pipe:
                pipe.hset(key, mapping=mapping)
                pipe.zadd(self._checked_key, {channel.id: 0}, nx=True)
                await pipe.execute()

            return record_from_hash(await self.redis_client.hgetall(key))

    async def get_channel_by_id(self, channel_id: str) -> Optional[ChannelRecord]:
        async with self._storage_errors("read"):
            data = await self.redis_client.hgetall(self._channel_key(channel_id))
        return record_from_hash(data) if data else None

    async def get_channels_needing_check(self, older_than_hours: float) -> List[ChannelRecord]:
        cutoff = (utc_now() - timedelta(hours=older_than_hours)).timestamp()
        async with self._storage_errors("read"):
            channel_ids = await self.redis_client.zrangebyscore(self._checked_key, "-inf", f"({cutoff}")
            return await self._fetch_records(channel_ids)

    async def upsert_channel_health(self, channel_id: str, fields: Mapping[str, Any]) -> ChannelRecord:
        key = self._channel_key(channel_id)
        async with self._storage_errors("write"):
            data = await self.redis_client.hgetall(key)
            if not data:
                raise ChannelNotFoundError(channel_id)

            record = record_from_hash(data)
            health = merge_health(record.health, fields)

            async with self.redis_client.pipeline(transaction=False) as pipe:
                pipe.hset(key, mapping=health_to_hash(health, HEALTH_FIELDS))
                if health.last_checked is not None:
                    pipe.zadd(self._checked_key, {channel_id: health.last_checked.timestamp()})
                await pipe.execute()

        return record.model_copy(update={"health": health})

    async def list_all_channels(self) -> List[ChannelRecord]:
        async with self._storage_errors("read"):
            channel_ids = await self.redis_client.zrange(self._checked_key, 0, -1)
            records = await self._fetch_records(channel_ids)
        return sorted(records, key=lambda r: r.channel.name)

    async def set_validated(self, channel_id: str, validated: bool) -> ChannelRecord:
        key = self._channel_key(channel_id)
        async with self._storage_errors("write"):
            if not await self.redis_client.exists(key):
                raise ChannelNotFoundError(channel_id)
            await self.redis_client.hset(key, "validated", _encode_bool(validated))
            return record_from_hash(await self.redis_client.hgetall(key))
