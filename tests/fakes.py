"""
Test doubles shared by the scheduler and API tests.
"""
import asyncio
from typing import Dict, List, Union

from channel_registry import InMemoryChannelRegistry, RegistryError
from models import Channel
from stream_probe import Reachable, Unreachable


def make_channel(channel_id: str, name: str = None, url: str = None) -> Channel:
    return Channel(
        id=channel_id,
        name=name or f"Channel {channel_id}",
        country="Kenya",
        group="News",
        source_url=url or f"http://streams.example.com/{channel_id}/index.m3u8",
    )


class ScriptedProbe:
    """
    Probe double returning scripted reachability per URL.

    A URL maps to a bool or to a list of bools consumed one per probe; URLs
    without a script use ``default``. In-flight probes are tracked so tests
    can assert the concurrency bound.
    """

    def __init__(self, scripts: Dict[str, Union[bool, List[bool]]] = None, default: bool = True,
                 delay: float = 0.0):
        self.scripts = {k: (list(v) if isinstance(v, list) else v) for k, v in (scripts or {}).items()}
        self.default = default
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        # Sizes of groups of probes that overlapped in time
        self.batches: List[int] = []

    def _next_result(self, url: str) -> bool:
        script = self.scripts.get(url, self.default)
        if isinstance(script, list):
            return script.pop(0) if script else self.default
        return script

    async def probe(self, url, timeout_primary=None, timeout_fallback=None):
        self.calls.append(url)
        self.in_flight += 1
        if self.in_flight == 1:
            self.batches.append(0)
        self.batches[-1] += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        if self._next_result(url):
            return Reachable(stage="head", status_code=200)
        return Unreachable("HTTP 503")


class BlockingProbe:
    """Probe double that holds every probe until ``release`` is set."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def probe(self, url, timeout_primary=None, timeout_fallback=None):
        self.started.set()
        await self.release.wait()
        return Reachable(stage="head", status_code=200)


class FailingRegistry(InMemoryChannelRegistry):
    """Registry whose staleness query always fails."""

    async def get_channels_needing_check(self, older_than_hours):
        raise RegistryError("registry unreachable")
