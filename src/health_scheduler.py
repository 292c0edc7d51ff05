"""
Periodic re-validation of the channel registry.

Stale channels are probed in small concurrent batches with a pause between
batches, each result is folded through the liveness policy, and the new
health is written back to the registry. Only one sweep runs at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Set

from config import settings
from channel_registry import ChannelNotFoundError, ChannelRegistry
from liveness_policy import LivenessPolicy
from models import (
    ChannelHealth,
    ChannelRecord,
    EventType,
    HealthEvent,
    SchedulerStatus,
    SweepResult,
    utc_now,
)
from stream_probe import ProbeOutcome, StreamProbe

logger = logging.getLogger(__name__)


@dataclass
class SchedulerState:
    sweep_running: bool = False
    interval_hours: Optional[float] = None
    timer_task: Optional[asyncio.Task] = None
    warmup_task: Optional[asyncio.Task] = None
    # Strong references to sweeps launched by the timer
    sweep_tasks: Set[asyncio.Task] = field(default_factory=set)
    sweeps_completed: int = 0
    last_sweep: Optional[SweepResult] = None
    last_sweep_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def timer_running(self) -> bool:
        return self.timer_task is not None and not self.timer_task.done()


class HealthScheduler:
    def __init__(
        self,
        registry: ChannelRegistry,
        probe: StreamProbe,
        policy: Optional[LivenessPolicy] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        recheck_interval_hours: Optional[float] = None,
        warmup_delay: Optional[float] = None,
        state: Optional[SchedulerState] = None,
    ):
        self.registry = registry
        self.probe = probe
        self.policy = policy or LivenessPolicy(settings.FAILURE_THRESHOLD)
        self.batch_size = batch_size if batch_size is not None else settings.SWEEP_BATCH_SIZE
        self.batch_delay = batch_delay if batch_delay is not None else settings.SWEEP_BATCH_DELAY
        self.recheck_interval_hours = (
            recheck_interval_hours if recheck_interval_hours is not None else settings.RECHECK_INTERVAL_HOURS
        )
        self.warmup_delay = warmup_delay if warmup_delay is not None else settings.SWEEP_WARMUP_DELAY
        self.state = state or SchedulerState()
        self.event_manager = None

        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    def set_event_manager(self, event_manager):
        """Set the event manager for emitting health transitions"""
        self.event_manager = event_manager

    async def _emit_event(self, event_type: EventType, channel_id: Optional[str], data: dict):
        if self.event_manager:
            try:
                await self.event_manager.emit_event(HealthEvent(
                    event_type=event_type,
                    channel_id=channel_id,
                    data=data
                ))
            except Exception as e:
                logger.error(f"Error emitting event: {e}")

    # ============================================================================
    # SWEEPS
    # ============================================================================

    async def run_sweep(self) -> SweepResult:
        """
        Probe every channel due for a re-check and persist the results.

        Returns zero counts without doing anything if another sweep is already
        in flight. Registry failures propagate to the caller.
        """
        if self.state.sweep_running:
            logger.info("Health sweep already in progress, skipping")
            return SweepResult()

        self.state.sweep_running = True
        try:
            result = await self._sweep()
        finally:
            self.state.sweep_running = False

        self.state.sweeps_completed += 1
        self.state.last_sweep = result
        self.state.last_sweep_at = utc_now()
        self.state.last_error = None

        if result.checked:
            await self._emit_event(EventType.SWEEP_COMPLETED, None, result.model_dump())
        return result

    async def _sweep(self) -> SweepResult:
        logger.info("Starting health sweep...")
        channels = await self.registry.get_channels_needing_check(self.recheck_interval_hours)

        if not channels:
            logger.info("No channels need checking")
            return SweepResult()

        result = SweepResult(checked=len(channels))

        for start in range(0, len(channels), self.batch_size):
            batch = channels[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.probe.probe(record.channel.source_url) for record in batch)
            )

            for record, outcome in zip(batch, outcomes):
                health = await self._record_outcome(record, outcome)
                if health.is_online:
                    result.online += 1
                else:
                    result.offline += 1

            if start + self.batch_size < len(channels):
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"Health sweep complete: {result.online} online, {result.offline} offline out of {result.checked}")
        return result

    async def check_one(self, channel_id: str) -> bool:
        """Probe a single channel now, persist the result and return its liveness."""
        record = await self.registry.get_channel_by_id(channel_id)
        if record is None:
            raise ChannelNotFoundError(channel_id)

        outcome = await self.probe.probe(record.channel.source_url)
        health = await self._record_outcome(record, outcome)
        return health.is_online

    async def _record_outcome(self, record: ChannelRecord, outcome: ProbeOutcome) -> ChannelHealth:
        health = self.policy.apply(record.health, outcome.reachable)
        updated = await self.registry.upsert_channel_health(record.id, {
            "is_online": health.is_online,
            "consecutive_failures": health.consecutive_failures,
            "last_checked": health.last_checked,
        })

        if not outcome.reachable:
            logger.debug(
                f"Channel {record.id} probe failed ({outcome.reason}), "
                f"{updated.health.consecutive_failures} consecutive failure(s)")

        await self._report_transition(record, updated.health, outcome)
        return updated.health

    async def _report_transition(self, record: ChannelRecord, health: ChannelHealth, outcome: ProbeOutcome):
        was_online = record.health.is_online
        if was_online == health.is_online:
            return

        if health.is_online:
            logger.info(f"Channel {record.id} ({record.channel.name}) is back online")
            event_type = EventType.CHANNEL_ONLINE
        else:
            logger.warning(
                f"Channel {record.id} ({record.channel.name}) marked offline after "
                f"{health.consecutive_failures} consecutive failures: {outcome.reason}")
            event_type = EventType.CHANNEL_OFFLINE

        await self._emit_event(event_type, record.id, {
            "name": record.channel.name,
            "source_url": record.channel.source_url,
            "consecutive_failures": health.consecutive_failures,
            "reason": outcome.reason,
        })

    # ============================================================================
    # PERIODIC SCHEDULING
    # ============================================================================

    def start(self, interval_hours: Optional[float] = None):
        """Run one sweep after the warm-up delay, then one every ``interval_hours``."""
        interval_hours = interval_hours if interval_hours is not None else settings.HEALTH_CHECK_INTERVAL_HOURS
        if interval_hours <= 0:
            raise ValueError("interval_hours must be positive")

        if self.state.timer_running:
            self._cancel_timers()

        self.state.interval_hours = interval_hours
        self.state.warmup_task = asyncio.create_task(self._warmup())
        self.state.timer_task = asyncio.create_task(self._timer_loop(interval_hours * 3600))

        logger.info(f"Periodic health check started (every {interval_hours} hours)")

    def stop(self):
        """Cancel the timer. A sweep already in progress runs to completion."""
        if self.state.timer_running or self.state.warmup_task:
            self._cancel_timers()
            logger.info("Periodic health check stopped")

    def _cancel_timers(self):
        for task in (self.state.warmup_task, self.state.timer_task):
            if task and not task.done():
                task.cancel()
        self.state.warmup_task = None
        self.state.timer_task = None
        self.state.interval_hours = None

    async def drain(self, timeout: Optional[float] = None):
        """Wait for timer-launched sweeps; cancel whatever is left after ``timeout``."""
        tasks = list(self.state.sweep_tasks)
        if not tasks:
            return

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} health sweep(s) still running at shutdown")
            await asyncio.gather(*pending, return_exceptions=True)

    async def _warmup(self):
        await asyncio.sleep(self.warmup_delay)
        self._launch_sweep("startup")

    async def _timer_loop(self, interval_seconds: float):
        # Fixed rate: ticks are not pushed back by a slow sweep
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval_seconds
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            self._launch_sweep("scheduled")
            next_tick += interval_seconds

    def _launch_sweep(self, trigger: str):
        task = asyncio.create_task(self._run_scheduled_sweep(trigger))
        self.state.sweep_tasks.add(task)
        task.add_done_callback(self.state.sweep_tasks.discard)

    async def _run_scheduled_sweep(self, trigger: str):
        # Failures are logged and dropped here; the next tick retries naturally
        try:
            await self.run_sweep()
        except Exception as e:
            self.state.last_error = str(e)
            logger.error(f"Health sweep ({trigger}) failed: {e}")

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self.state.timer_running,
            sweep_in_progress=self.state.sweep_running,
            interval_hours=self.state.interval_hours,
            sweeps_completed=self.state.sweeps_completed,
            last_sweep=self.state.last_sweep,
            last_sweep_at=self.state.last_sweep_at,
            last_error=self.state.last_error,
        )
