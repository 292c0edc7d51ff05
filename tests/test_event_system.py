"""
Test the event system integration
"""
import asyncio
import pytest
from unittest.mock import AsyncMock
from datetime import datetime

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import events
from models import HealthEvent, EventType, WebhookConfig
from events import EventManager


class FakeResponse:
    def __init__(self, status):
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession and records every POST"""

    posts = []
    statuses = []
    instances = []

    def __init__(self):
        self.closed = False
        FakeSession.instances.append(self)

    async def close(self):
        self.closed = True

    def post(self, url, json=None, headers=None, timeout=None):
        FakeSession.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        status = FakeSession.statuses.pop(0) if FakeSession.statuses else 200
        return FakeResponse(status)


@pytest.fixture
def fake_session(monkeypatch):
    FakeSession.posts = []
    FakeSession.statuses = []
    FakeSession.instances = []
    monkeypatch.setattr(events.aiohttp, "ClientSession", FakeSession)
    return FakeSession


class TestEventSystem:
    """Test the integrated event system"""

    @pytest.mark.asyncio
    async def test_event_manager_basic_functionality(self):
        """Test that EventManager can start, emit events, and stop"""
        event_manager = EventManager()
        events_received = []

        def test_handler(event):
            events_received.append(event)

        event_manager.add_handler(test_handler)
        await event_manager.start()

        test_event = HealthEvent(
            event_type=EventType.CHANNEL_OFFLINE,
            channel_id="ch-7",
            data={"consecutive_failures": 3}
        )
        await event_manager.emit_event(test_event)

        # Give time for event processing
        await asyncio.sleep(0.1)
        await event_manager.stop()

        assert len(events_received) == 1
        assert events_received[0].event_type == EventType.CHANNEL_OFFLINE
        assert events_received[0].channel_id == "ch-7"

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        event_manager = EventManager()
        received = []

        def broken_handler(event):
            raise RuntimeError("boom")

        async def async_handler(event):
            received.append(event.channel_id)

        event_manager.add_handler(broken_handler)
        event_manager.add_handler(async_handler)
        await event_manager.start()

        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="ch-2"))
        await asyncio.sleep(0.1)
        await event_manager.stop()

        assert received == ["ch-2"]

    @pytest.mark.asyncio
    async def test_webhook_configuration(self):
        """Test webhook configuration and management"""
        event_manager = EventManager()
        webhook_url = "http://example.com/webhook"

        webhook_config = WebhookConfig(
            url=webhook_url,
            events=[EventType.CHANNEL_OFFLINE, EventType.CHANNEL_ONLINE],
            timeout=5,
            retry_attempts=2
        )
        event_manager.add_webhook(webhook_config)

        assert len(event_manager.webhooks) == 1
        assert str(event_manager.webhooks[0].url) == webhook_url
        assert EventType.CHANNEL_OFFLINE in event_manager.webhooks[0].events

        removed = event_manager.remove_webhook(webhook_url)
        assert removed is True
        assert len(event_manager.webhooks) == 0
        assert event_manager.remove_webhook(webhook_url) is False

    @pytest.mark.asyncio
    async def test_webhook_payload(self, fake_session):
        event_manager = EventManager()
        webhook = WebhookConfig(url="http://example.com/webhook", headers={"X-Secret": "s3cret"})
        event = HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-4", data={"reason": "Timeout"})

        delivered = await event_manager.send_webhook(webhook, event)

        assert delivered is True
        post = fake_session.posts[0]
        assert post["url"] == "http://example.com/webhook"
        assert post["json"]["event_type"] == "channel_offline"
        assert post["json"]["channel_id"] == "ch-4"
        assert post["json"]["data"] == {"reason": "Timeout"}
        assert post["headers"]["User-Agent"] == "Channel-Health-Webhook/1.0"
        assert post["headers"]["X-Secret"] == "s3cret"

    @pytest.mark.asyncio
    async def test_webhook_retries_then_gives_up(self, fake_session, monkeypatch):
        backoff = AsyncMock()
        monkeypatch.setattr(events.asyncio, "sleep", backoff)
        fake_session.statuses = [500, 502, 503]
        event_manager = EventManager()
        webhook = WebhookConfig(url="http://example.com/webhook", retry_attempts=2)
        event = HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="ch-4")

        delivered = await event_manager.send_webhook(webhook, event)

        assert delivered is False
        assert len(fake_session.posts) == 3
        assert [c.args[0] for c in backoff.await_args_list] == [1, 2]
        assert event_manager.delivery_stats["http://example.com/webhook"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_webhook_only_receives_subscribed_events(self, fake_session):
        event_manager = EventManager()
        event_manager.add_webhook(WebhookConfig(
            url="http://example.com/webhook",
            events=[EventType.SWEEP_COMPLETED]
        ))
        await event_manager.start()

        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-1"))
        await event_manager.emit_event(HealthEvent(
            event_type=EventType.SWEEP_COMPLETED, data={"checked": 1, "online": 0, "offline": 1}))
        await asyncio.sleep(0.1)
        await event_manager.stop()

        assert [p["json"]["event_type"] for p in fake_session.posts] == ["sweep_completed"]

    @pytest.mark.asyncio
    async def test_webhook_channel_filter(self, fake_session):
        event_manager = EventManager()
        event_manager.add_webhook(WebhookConfig(url="http://example.com/watch", channel_ids=["ch-1"]))
        await event_manager.start()

        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-2"))
        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-1"))
        await event_manager.emit_event(HealthEvent(event_type=EventType.SWEEP_COMPLETED))
        await asyncio.sleep(0.1)
        await event_manager.stop()

        delivered = [(p["json"]["event_type"], p["json"]["channel_id"]) for p in fake_session.posts]
        assert delivered == [("channel_offline", "ch-1"), ("sweep_completed", None)]

    @pytest.mark.asyncio
    async def test_handler_event_type_filter(self):
        event_manager = EventManager()
        offline_only = []
        event_manager.add_handler(lambda event: offline_only.append(event.channel_id), [EventType.CHANNEL_OFFLINE])
        await event_manager.start()

        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="ch-1"))
        await event_manager.emit_event(HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-2"))
        await asyncio.sleep(0.1)
        await event_manager.stop()

        assert offline_only == ["ch-2"]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, fake_session, monkeypatch):
        backoff = AsyncMock()
        monkeypatch.setattr(events.asyncio, "sleep", backoff)
        fake_session.statuses = [404]
        event_manager = EventManager()
        webhook = WebhookConfig(url="http://example.com/webhook", retry_attempts=3)
        event_manager.add_webhook(webhook)

        delivered = await event_manager.send_webhook(
            webhook, HealthEvent(event_type=EventType.CHANNEL_OFFLINE, channel_id="ch-1"))

        assert delivered is False
        assert len(fake_session.posts) == 1
        backoff.assert_not_awaited()
        assert event_manager.delivery_stats["http://example.com/webhook"] == {
            "delivered": 0, "failed": 1, "last_error": "HTTP 404"}

    @pytest.mark.asyncio
    async def test_throttled_delivery_retries_until_success(self, fake_session, monkeypatch):
        monkeypatch.setattr(events.asyncio, "sleep", AsyncMock())
        fake_session.statuses = [429, 200]
        event_manager = EventManager()
        webhook = WebhookConfig(url="http://example.com/webhook", retry_attempts=3)

        delivered = await event_manager.send_webhook(
            webhook, HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="ch-1"))

        assert delivered is True
        assert len(fake_session.posts) == 2
        assert event_manager.delivery_stats["http://example.com/webhook"]["delivered"] == 1

    @pytest.mark.asyncio
    async def test_stop_closes_shared_session(self, fake_session):
        event_manager = EventManager()
        await event_manager.start()
        webhook = WebhookConfig(url="http://example.com/webhook")

        await event_manager.send_webhook(webhook, HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="a"))
        await event_manager.send_webhook(webhook, HealthEvent(event_type=EventType.CHANNEL_ONLINE, channel_id="b"))
        await event_manager.stop()

        assert len(fake_session.instances) == 1
        assert fake_session.instances[0].closed is True

    def test_event_model_creation(self):
        """Test that event models can be created properly"""
        event = HealthEvent(
            event_type=EventType.CHANNEL_ONLINE,
            channel_id="ch-12",
            data={"consecutive_failures": 0}
        )

        assert event.event_type == EventType.CHANNEL_ONLINE
        assert event.channel_id == "ch-12"
        assert event.event_id is not None  # Auto-generated
        assert isinstance(event.timestamp, datetime)

    def test_webhook_config_defaults_to_all_events(self):
        config = WebhookConfig(url="https://secure.example.com/webhook")

        assert config.timeout == 10
        assert config.retry_attempts == 3
        assert set(config.events) == set(EventType)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
