from fastapi import FastAPI, HTTPException, Query, Request, Depends, Header
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from typing import List, Optional

from channel_catalog import DEFAULT_CHANNELS, initialize_channels, load_channels_file
from channel_registry import (
    ChannelNotFoundError,
    ChannelRegistry,
    InMemoryChannelRegistry,
    RedisChannelRegistry,
    RegistryError,
)
from config import settings, VERSION
from events import EventManager
from health_scheduler import HealthScheduler
from models import (
    Channel,
    ChannelCheckResponse,
    ChannelHealth,
    ChannelRecord,
    EventType,
    HealthEvent,
    SweepResult,
    ValidationToggleRequest,
    WebhookConfig,
)
from redis_config import get_redis_config, should_use_redis
from stream_probe import StreamProbe

logger = logging.getLogger(__name__)


def create_registry() -> ChannelRegistry:
    """Build the channel registry selected by configuration"""
    if should_use_redis():
        redis_config = get_redis_config()
        logger.info("Using Redis channel registry")
        return RedisChannelRegistry(
            redis_url=redis_config["redis_url"],
            key_prefix=redis_config["key_prefix"]
        )
    logger.info("Using in-memory channel registry")
    return InMemoryChannelRegistry()


def get_bootstrap_channels() -> List[Channel]:
    channels: List[Channel] = []
    if settings.SEED_DEFAULT_CHANNELS:
        channels.extend(DEFAULT_CHANNELS)
    if settings.CHANNELS_FILE:
        channels.extend(load_channels_file(settings.CHANNELS_FILE))
    return channels


# Global registry, probe, scheduler and event manager
registry = create_registry()
stream_probe = StreamProbe()
scheduler = HealthScheduler(registry, stream_probe)
event_manager = EventManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    logger.info("channel-health starting up...")
    await event_manager.start()
    scheduler.set_event_manager(event_manager)

    def log_event_handler(event: HealthEvent):
        logger.info(
            f"Event: {event.event_type.value} for channel {event.channel_id} at {event.timestamp}")

    event_manager.add_handler(log_event_handler, [EventType.CHANNEL_OFFLINE, EventType.CHANNEL_ONLINE])

    try:
        await registry.connect()
        await initialize_channels(registry, get_bootstrap_channels())
    except RegistryError as e:
        # Scheduled sweeps keep retrying against the registry once it is back
        logger.error(f"Channel bootstrap failed: {e}")

    if settings.HEALTH_CHECK_ENABLED:
        scheduler.start(settings.HEALTH_CHECK_INTERVAL_HOURS)
    else:
        logger.info("Periodic health check disabled")

    yield

    # Shutdown
    logger.info("channel-health shutting down...")
    scheduler.stop()
    await scheduler.drain(timeout=5.0)
    await stream_probe.aclose()
    await registry.close()
    await event_manager.stop()


app = FastAPI(
    title="channel-health",
    version=VERSION,
    description="Liveness monitoring for externally hosted IPTV channels",
    lifespan=lifespan,
    root_path=settings.ROOT_PATH,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    openapi_url=settings.OPENAPI_URL,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    logger.error(f"Registry unavailable during {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Channel registry unavailable"})


async def verify_token(
    x_api_token: Optional[str] = Header(None, alias="X-API-Token"),
    api_token: Optional[str] = Query(
        None, description="API token (alternative to X-API-Token header)")
):
    """
    Verify API token if API_TOKEN is configured.
    Token can be provided via:
    - X-API-Token header (recommended)
    - api_token query parameter (for browser access or when headers are difficult)

    If API_TOKEN is not set in environment, authentication is disabled.
    """
    if not settings.API_TOKEN:
        return True

    provided_token = x_api_token or api_token

    if not provided_token:
        raise HTTPException(
            status_code=401,
            detail="API token required. Provide token via X-API-Token header or api_token query parameter.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if provided_token != settings.API_TOKEN:
        raise HTTPException(
            status_code=403,
            detail="Invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return True


async def get_channel_or_404(channel_id: str) -> ChannelRecord:
    record = await registry.get_channel_by_id(channel_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Channel not found")
    return record


@app.get("/", dependencies=[Depends(verify_token)])
async def root():
    return {
        "status": "running",
        "message": "channel-health is running",
        "version": VERSION,
        "scheduler": scheduler.get_status(),
    }


@app.get("/health", dependencies=[Depends(verify_token)])
async def health_check():
    """Health check endpoint with detailed status"""
    return {
        "status": "healthy",
        "version": VERSION,
        "registry": registry.backend,
        "scheduler": scheduler.get_status(),
    }


# Channel endpoints (serving read path)


@app.get("/channels")
async def list_channels(
    online: bool = Query(False, description="Only channels currently online"),
    validated: bool = Query(False, description="Only admin-validated channels"),
):
    """List channels, optionally filtered to online or validated ones"""
    if validated:
        channels = await registry.list_validated_channels()
    elif online:
        channels = await registry.list_online_channels()
    else:
        channels = await registry.list_all_channels()

    if online and validated:
        channels = [c for c in channels if c.health.is_online]

    return {
        "channels": channels,
        "total": len(channels)
    }


@app.get("/channels/{channel_id}", response_model=ChannelRecord)
async def get_channel(channel_id: str):
    return await get_channel_or_404(channel_id)


@app.get("/channels/{channel_id}/health", response_model=ChannelHealth)
async def get_channel_health(channel_id: str):
    record = await get_channel_or_404(channel_id)
    return record.health


# Admin endpoints


@app.post("/channels/health-check", response_model=SweepResult, dependencies=[Depends(verify_token)])
async def run_health_check():
    """Run a full sweep over every channel due for a re-check"""
    return await scheduler.run_sweep()


@app.post("/channels/{channel_id}/check", response_model=ChannelCheckResponse,
          dependencies=[Depends(verify_token)])
async def check_channel(channel_id: str):
    """Re-check a single channel immediately"""
    try:
        is_online = await scheduler.check_one(channel_id)
    except ChannelNotFoundError:
        raise HTTPException(status_code=404, detail="Channel not found")

    record = await get_channel_or_404(channel_id)
    return ChannelCheckResponse(is_online=is_online, channel=record)


@app.put("/channels/{channel_id}/validation", response_model=ChannelRecord,
         dependencies=[Depends(verify_token)])
async def set_channel_validation(channel_id: str, request: ValidationToggleRequest):
    """Mark a channel as manually vetted, or clear the mark"""
    try:
        return await registry.set_validated(channel_id, request.validated)
    except ChannelNotFoundError:
        raise HTTPException(status_code=404, detail="Channel not found")


@app.get("/scheduler", dependencies=[Depends(verify_token)])
async def get_scheduler_status():
    return scheduler.get_status()


# Webhook Management Endpoints


@app.post("/webhooks", dependencies=[Depends(verify_token)])
async def add_webhook(webhook: WebhookConfig):
    """Add a new webhook configuration"""
    event_manager.add_webhook(webhook)
    return {
        "message": "Webhook added successfully",
        "webhook_url": str(webhook.url),
        "events": [event.value for event in webhook.events],
        "channel_ids": webhook.channel_ids
    }


@app.get("/webhooks", dependencies=[Depends(verify_token)])
async def list_webhooks():
    """List all configured webhooks"""
    webhooks = [
        {
            "url": str(wh.url),
            "events": [event.value for event in wh.events],
            "channel_ids": wh.channel_ids,
            "timeout": wh.timeout,
            "retry_attempts": wh.retry_attempts,
            "delivery": event_manager.delivery_stats.get(str(wh.url))
        }
        for wh in event_manager.webhooks
    ]
    return {"webhooks": webhooks}


@app.delete("/webhooks", dependencies=[Depends(verify_token)])
async def remove_webhook(webhook_url: str = Query(..., description="Webhook URL to remove")):
    """Remove a webhook configuration"""
    if event_manager.remove_webhook(webhook_url):
        return {"message": f"Webhook {webhook_url} removed successfully"}
    raise HTTPException(status_code=404, detail="Webhook not found")


@app.post("/webhooks/test", dependencies=[Depends(verify_token)])
async def test_webhook(webhook_url: str = Query(..., description="Webhook URL to test")):
    """Send a test event to a webhook"""
    test_event = HealthEvent(
        event_type=EventType.CHANNEL_OFFLINE,
        channel_id="test-channel",
        data={
            "test": True,
            "message": "This is a test webhook event",
            "source_url": "http://example.com/test.m3u8"
        }
    )

    webhook = event_manager.get_webhook(webhook_url)
    if webhook is None:
        raise HTTPException(status_code=404, detail="Webhook not found")

    delivered = await event_manager.send_webhook(webhook, test_event)
    return {
        "message": f"Test event sent to {webhook_url}",
        "delivered": delivered,
        "event_id": test_event.event_id
    }
