from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import aiohttp

GLOBAL_BUCKET = "global"
RESET_MARGIN_SEC = 0.05


@dataclass(frozen=True)
class RateBucket:
    key: str
    remaining: int | None = None
    reset_after: float | None = None
    observed_at: float = field(default_factory=time.monotonic)

    def blocked_until(self) -> float | None:
        if self.remaining is None or self.reset_after is None:
            return None
        if self.remaining > 0:
            return None
        return self.observed_at + self.reset_after + RESET_MARGIN_SEC


class RateLimiter:
    """
    Reactive limiter fed by the rate-limit headers the platform returns.

    `wait()` suspends until every exhausted bucket has passed its reset
    window. Buckets that were never observed, or that lack either field,
    never block.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, RateBucket] = {}

    def update(self, bucket: str, remaining: int | None = None, reset_after: float | None = None) -> RateBucket:
        entry = RateBucket(key=bucket, remaining=remaining, reset_after=reset_after, observed_at=self._clock())
        self._buckets[bucket] = entry
        return entry

    def get(self, bucket: str) -> RateBucket | None:
        return self._buckets.get(bucket)

    def snapshot(self) -> dict[str, RateBucket]:
        return dict(self._buckets)

    async def wait(self) -> float:
        """Block until no known bucket is exhausted; returns seconds slept."""

        slept = 0.0
        deadlines = sorted(
            deadline for deadline in (bucket.blocked_until() for bucket in list(self._buckets.values())) if deadline is not None
        )
        for deadline in deadlines:
            delay = deadline - self._clock()
            if delay <= 0:
                continue
            await asyncio.sleep(delay)
            slept += delay
        return slept

    def observe_headers(self, headers: Mapping[str, str], status: int = 200) -> RateBucket | None:
        if status == 429 and _truthy(headers.get("X-RateLimit-Global")):
            retry_after = _parse_float(headers.get("Retry-After"))
            return self.update(GLOBAL_BUCKET, remaining=0, reset_after=retry_after)
        bucket = headers.get("X-RateLimit-Bucket")
        if not bucket:
            return None
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))
        reset_after = _parse_float(headers.get("X-RateLimit-Reset-After"))
        if status == 429:
            remaining = 0
            reset_after = _parse_float(headers.get("Retry-After")) or reset_after
        return self.update(bucket, remaining=remaining, reset_after=reset_after)

    def trace_config(self) -> aiohttp.TraceConfig:
        trace = aiohttp.TraceConfig()

        async def on_request_end(
            session: aiohttp.ClientSession,
            context: Any,
            params: aiohttp.TraceRequestEndParams,
        ) -> None:
            self.observe_headers(params.response.headers, params.response.status)

        trace.on_request_end.append(on_request_end)
        return trace


class ThrottledTransport:
    """Proxy that awaits the limiter before every coroutine call on the transport."""

    def __init__(self, transport: Any, limiter: RateLimiter) -> None:
        self._transport = transport
        self._limiter = limiter

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._transport, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        async def call(*args: Any, **kwargs: Any) -> Any:
            await self._limiter.wait()
            return await attr(*args, **kwargs)

        call.__name__ = name
        return call


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


def _parse_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() == "true"
