"""
Delivery of channel health events to in-process handlers and webhooks.
"""

import asyncio
import aiohttp
import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from models import EventType, HealthEvent, WebhookConfig


logger = logging.getLogger(__name__)

# 4xx answers other than these mean the receiver rejected the payload for good
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def webhook_payload(event: HealthEvent) -> Dict[str, Any]:
    return {
        "event_id": event.event_id,
        "event_type": event.event_type.value,
        "channel_id": event.channel_id,
        "timestamp": event.timestamp.isoformat(),
        "data": event.data
    }


def webhook_wants(webhook: WebhookConfig, event: HealthEvent) -> bool:
    """Check a webhook's event and channel subscriptions against an event."""
    if event.event_type not in webhook.events:
        return False
    # Sweep events carry no channel and reach every subscriber
    if webhook.channel_ids is None or event.channel_id is None:
        return True
    return event.channel_id in webhook.channel_ids


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status in RETRYABLE_CLIENT_STATUSES


class EventManager:
    def __init__(self):
        self.webhooks: List[WebhookConfig] = []
        self.event_queue = asyncio.Queue()
        self.event_handlers: List[Tuple[Callable, Optional[FrozenSet[EventType]]]] = []
        self.delivery_stats: Dict[str, Dict[str, Any]] = {}
        self._session: Optional[aiohttp.ClientSession] = None
        self._running = False
        self._worker_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the event manager worker."""
        self._running = True
        self._worker_task = asyncio.create_task(self._process_events())
        logger.info("Event manager started")

    async def stop(self):
        """Stop the worker and close the webhook session."""
        self._running = False
        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        if self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("Event manager stopped")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    # Subscriptions

    def add_webhook(self, webhook: WebhookConfig):
        """Add a webhook configuration."""
        self.webhooks.append(webhook)
        self.delivery_stats.setdefault(str(webhook.url), {"delivered": 0, "failed": 0, "last_error": None})
        scope = "all channels" if webhook.channel_ids is None else f"{len(webhook.channel_ids)} channel(s)"
        logger.info(f"Added webhook for {webhook.url} ({scope})")

    def remove_webhook(self, webhook_url: str) -> bool:
        """Remove a webhook by URL."""
        initial_count = len(self.webhooks)
        self.webhooks = [wh for wh in self.webhooks if str(wh.url) != webhook_url]
        removed = len(self.webhooks) != initial_count
        if removed:
            self.delivery_stats.pop(webhook_url, None)
            logger.info(f"Removed webhook {webhook_url}")
        return removed

    def get_webhook(self, webhook_url: str) -> Optional[WebhookConfig]:
        for webhook in self.webhooks:
            if str(webhook.url) == webhook_url:
                return webhook
        return None

    def add_handler(self, handler: Callable, event_types: Optional[Iterable[EventType]] = None):
        """Register a handler, optionally only for some event types."""
        types = frozenset(event_types) if event_types is not None else None
        self.event_handlers.append((handler, types))
        logger.info(f"Added event handler: {handler.__name__}")

    # Dispatch

    async def emit_event(self, event: HealthEvent):
        """Queue an event for processing."""
        await self.event_queue.put(event)
        logger.debug(f"Emitted event: {event.event_type.value} for channel {event.channel_id}")

    async def _process_events(self):
        while self._running:
            event = await self.event_queue.get()
            try:
                await self._handle_event(event)
            except Exception as e:
                logger.error(f"Error processing {event.event_type.value} event: {e}")

    async def _handle_event(self, event: HealthEvent):
        for handler, types in self.event_handlers:
            if types is not None and event.event_type not in types:
                continue
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as e:
                logger.error(f"Error in event handler {handler.__name__}: {e}")

        targets = [wh for wh in self.webhooks if webhook_wants(wh, event)]
        if targets:
            await asyncio.gather(
                *(self.send_webhook(wh, event) for wh in targets),
                return_exceptions=True
            )

    async def send_webhook(self, webhook: WebhookConfig, event: HealthEvent) -> bool:
        """
        Deliver an event to one webhook.

        Server errors, throttling and network failures are retried with
        exponential backoff; other 4xx answers give up at once.
        """
        url = str(webhook.url)
        stats = self.delivery_stats.setdefault(url, {"delivered": 0, "failed": 0, "last_error": None})
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "Channel-Health-Webhook/1.0",
            **webhook.headers
        }
        session = self._get_session()

        for attempt in range(webhook.retry_attempts + 1):
            try:
                async with session.post(
                    url,
                    json=webhook_payload(event),
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=webhook.timeout)
                ) as response:
                    if response.status < 400:
                        logger.debug(f"Webhook {event.event_type.value} delivered to {url}")
                        stats["delivered"] += 1
                        return True

                    stats["last_error"] = f"HTTP {response.status}"
                    if not is_retryable_status(response.status):
                        logger.warning(f"Webhook rejected with status {response.status}, not retrying: {url}")
                        break
                    logger.warning(f"Webhook failed with status {response.status}: {url}")

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                stats["last_error"] = str(e) or type(e).__name__
                logger.warning(f"Webhook attempt {attempt + 1} failed for {url}: {stats['last_error']}")

            if attempt < webhook.retry_attempts:
                await asyncio.sleep(2 ** attempt)

        stats["failed"] += 1
        logger.error(f"Giving up on webhook {url} for event {event.event_id}")
        return False
