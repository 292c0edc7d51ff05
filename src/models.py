from pydantic import BaseModel, Field, HttpUrl
from typing import List, Optional, Dict, Any
from enum import Enum
from datetime import datetime, timezone
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    CHANNEL_ONLINE = "channel_online"
    CHANNEL_OFFLINE = "channel_offline"
    SWEEP_COMPLETED = "sweep_completed"


class Channel(BaseModel):
    """Identity and static metadata of a registered channel."""
    id: str = Field(min_length=1)
    name: str
    country: str = ""
    group: str = ""
    # Not validated as a URL here: malformed sources are caught by the probe
    source_url: str


class ChannelHealth(BaseModel):
    """Liveness state owned by the health subsystem."""
    # Optimistic default: a channel that was never probed is shown to users
    is_online: bool = True
    consecutive_failures: int = Field(default=0, ge=0)
    last_checked: Optional[datetime] = None
    # Admin curation flag, unrelated to liveness
    validated: bool = False


# Fields the health subsystem is allowed to write
HEALTH_FIELDS = frozenset({"is_online", "consecutive_failures", "last_checked"})


class ChannelRecord(BaseModel):
    channel: Channel
    health: ChannelHealth = Field(default_factory=ChannelHealth)

    @property
    def id(self) -> str:
        return self.channel.id


class SweepResult(BaseModel):
    checked: int = 0
    online: int = 0
    offline: int = 0


class ChannelCheckResponse(BaseModel):
    is_online: bool
    channel: ChannelRecord


class ValidationToggleRequest(BaseModel):
    validated: bool


class HealthEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: EventType
    channel_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    data: Dict[str, Any] = Field(default_factory=dict)


class WebhookConfig(BaseModel):
    url: HttpUrl
    events: List[EventType] = Field(default_factory=lambda: list(EventType))
    # None subscribes to every channel
    channel_ids: Optional[List[str]] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout: int = Field(default=10, ge=1)
    retry_attempts: int = Field(default=3, ge=0)


class SchedulerStatus(BaseModel):
    running: bool
    sweep_in_progress: bool
    interval_hours: Optional[float] = None
    sweeps_completed: int = 0
    last_sweep: Optional[SweepResult] = None
    last_sweep_at: Optional[datetime] = None
    last_error: Optional[str] = None
