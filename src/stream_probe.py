"""
Reachability probe for remote media URLs.

A header-only request is tried first. When that is inconclusive a small
ranged GET is issued and the first chunk of body bytes settles it, which
tolerates origins that reject HEAD but stream happily on GET.
"""

import asyncio
import httpx
import logging
import time
from dataclasses import dataclass
from typing import ClassVar, Optional, Union
from urllib.parse import urlparse

from config import settings

logger = logging.getLogger(__name__)

INVALID_URL_REASON = "invalid url"
TIMEOUT_REASON = "Timeout"


@dataclass(frozen=True)
class Reachable:
    stage: str
    status_code: Optional[int] = None
    response_time: Optional[float] = None  # seconds

    reachable: ClassVar[bool] = True
    reason: ClassVar[Optional[str]] = None


@dataclass(frozen=True)
class Unreachable:
    reason: str

    reachable: ClassVar[bool] = False


@dataclass(frozen=True)
class Invalid:
    reason: str = INVALID_URL_REASON

    reachable: ClassVar[bool] = False


ProbeOutcome = Union[Reachable, Unreachable, Invalid]


def is_success_status(status_code: int) -> bool:
    """Success and redirect responses both count as a live origin."""
    return 200 <= status_code < 400


def is_probeable_url(url) -> bool:
    """Check that a URL is a well-formed absolute http(s) URL"""
    if not isinstance(url, str) or not url.strip():
        return False

    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
        # Accessing the port validates it (raises ValueError when out of range)
        parsed.port
    except ValueError:
        return False

    if parsed.scheme.lower() not in ("http", "https"):
        return False
    if not hostname:
        return False

    try:
        httpx.URL(url.strip())
    except httpx.InvalidURL:
        return False

    return True


class StreamProbe:
    """Two-stage reachability check against a single stream URL."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout_primary: Optional[float] = None,
        timeout_fallback: Optional[float] = None,
        range_bytes: Optional[int] = None,
    ):
        self.user_agent = user_agent or settings.DEFAULT_USER_AGENT
        self.timeout_primary = timeout_primary if timeout_primary is not None else settings.PROBE_PRIMARY_TIMEOUT
        self.timeout_fallback = timeout_fallback if timeout_fallback is not None else settings.PROBE_FALLBACK_TIMEOUT
        self.range_bytes = range_bytes if range_bytes is not None else settings.PROBE_RANGE_BYTES

        self._owns_client = client is None
        # No keep-alive: every probe tears its connection down once it has an answer
        self.client = client or httpx.AsyncClient(
            follow_redirects=False,
            limits=httpx.Limits(
                max_keepalive_connections=0,
                max_connections=50,
            )
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    def _headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": "*/*",
        }

    async def probe(
        self,
        url: str,
        timeout_primary: Optional[float] = None,
        timeout_fallback: Optional[float] = None,
    ) -> ProbeOutcome:
        """
        Determine whether the origin behind ``url`` currently serves content.

        Never raises for network conditions; every failure is folded into an
        ``Unreachable`` outcome. The total wall-clock time is bounded by
        ``timeout_primary + timeout_fallback``.
        """
        if not is_probeable_url(url):
            logger.debug(f"Refusing to probe malformed URL: {url!r}")
            return Invalid()

        url = url.strip()
        timeout_primary = timeout_primary if timeout_primary is not None else self.timeout_primary
        timeout_fallback = timeout_fallback if timeout_fallback is not None else self.timeout_fallback

        outcome = await self._run_stage(self._check_head(url, timeout_primary), timeout_primary)
        if outcome.reachable:
            logger.debug(f"HEAD succeeded for {url} ({outcome.status_code})")
            return outcome

        logger.debug(f"HEAD inconclusive for {url} ({outcome.reason}), trying ranged GET")
        outcome = await self._run_stage(self._check_ranged_get(url, timeout_fallback), timeout_fallback)
        if outcome.reachable:
            logger.debug(f"Ranged GET succeeded for {url} ({outcome.status_code})")
        else:
            logger.debug(f"Probe failed for {url}: {outcome.reason}")
        return outcome

    async def _run_stage(self, stage, timeout: float) -> ProbeOutcome:
        # httpx timeouts apply per operation; wait_for bounds the whole stage
        try:
            return await asyncio.wait_for(stage, timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return Unreachable(TIMEOUT_REASON)
        except httpx.HTTPError as e:
            return Unreachable(str(e) or type(e).__name__)
        except httpx.InvalidURL:
            return Invalid()

    async def _check_head(self, url: str, timeout: float) -> ProbeOutcome:
        started = time.monotonic()
        response = await self.client.head(
            url,
            headers=self._headers(),
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        )
        if is_success_status(response.status_code):
            return Reachable(
                stage="head",
                status_code=response.status_code,
                response_time=time.monotonic() - started,
            )
        return Unreachable(f"HTTP {response.status_code}")

    async def _check_ranged_get(self, url: str, timeout: float) -> ProbeOutcome:
        started = time.monotonic()
        headers = self._headers()
        headers["Range"] = f"bytes=0-{self.range_bytes}"

        # No chunk_size: a rechunking buffer would hold back a short first read.
        # Leaving the context closes the connection without draining the body,
        # so at most one network read happens even if the server ignores Range
        async with self.client.stream(
            "GET",
            url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        ) as response:
            async for chunk in response.aiter_raw():
                if chunk:
                    return Reachable(
                        stage="ranged_get",
                        status_code=response.status_code,
                        response_time=time.monotonic() - started,
                    )

            if is_success_status(response.status_code):
                return Reachable(
                    stage="ranged_get",
                    status_code=response.status_code,
                    response_time=time.monotonic() - started,
                )
            return Unreachable(f"HTTP {response.status_code}")
