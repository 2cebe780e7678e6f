from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    delay_sec: float = 4.0
    accept: Callable[[object], bool] = lambda value: value is not None


async def retry_lookup(
    lookup: Callable[[], Awaitable[T] | T],
    policy: RetryPolicy,
    *,
    on_retry: Callable[[int], None] | None = None,
) -> T | None:
    """
    Call `lookup` until `policy.accept` likes the result or attempts run out.

    Used for startup probes against gateway state that may not be populated
    right after connect (guild list, channel by name).
    """

    for attempt in range(1, max(1, policy.attempts) + 1):
        value = lookup()
        if asyncio.iscoroutine(value):
            value = await value
        if policy.accept(value):
            return value  # type: ignore[return-value]
        if attempt < policy.attempts:
            if on_retry is not None:
                on_retry(attempt)
            await asyncio.sleep(policy.delay_sec)
    return None
