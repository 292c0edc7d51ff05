"""
Failure hysteresis for channel liveness.

A channel only drops out of the public catalogue after several consecutive
failed probes; a single success brings it straight back.
"""

from datetime import datetime
from typing import Optional

from models import ChannelHealth, utc_now

DEFAULT_FAILURE_THRESHOLD = 3


def apply(
    prior: ChannelHealth,
    probe_reachable: bool,
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
    checked_at: Optional[datetime] = None,
) -> ChannelHealth:
    """
    Fold one probe result into a channel's health.

    ``checked_at`` defaults to the current time. ``last_checked`` never moves
    backwards, and fields outside the liveness state (``validated``) are
    carried over untouched.
    """
    if failure_threshold < 1:
        raise ValueError("failure_threshold must be at least 1")

    checked_at = checked_at or utc_now()
    if prior.last_checked is not None and checked_at < prior.last_checked:
        checked_at = prior.last_checked

    if probe_reachable:
        return prior.model_copy(update={
            "is_online": True,
            "consecutive_failures": 0,
            "last_checked": checked_at,
        })

    failures = prior.consecutive_failures + 1
    return prior.model_copy(update={
        "is_online": failures < failure_threshold,
        "consecutive_failures": failures,
        "last_checked": checked_at,
    })


class LivenessPolicy:
    """Holds a failure threshold and applies it to probe results."""

    def __init__(self, failure_threshold: int = DEFAULT_FAILURE_THRESHOLD):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold

    def apply(
        self,
        prior: ChannelHealth,
        probe_reachable: bool,
        checked_at: Optional[datetime] = None,
    ) -> ChannelHealth:
        return apply(prior, probe_reachable, self.failure_threshold, checked_at)
