"""Synthetic progress reporting around a non-incremental generation call."""
from __future__ import annotations

import asyncio
import contextlib
import random
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

ProgressCallback = Callable[[int, str], None]
Sleep = Callable[[float], Awaitable[None]]

DRAFTING_PHASES = ("Drafting sections...", "Expanding details...", "Checking constraints...")
TICK_CEILING = 90


async def _tick(on_progress: ProgressCallback, interval_s: float, sleep: Sleep, rng: random.Random) -> None:
    current = 20
    while current < TICK_CEILING:
        await sleep(interval_s)
        current = min(TICK_CEILING, current + rng.randint(2, 9))
        on_progress(current, rng.choice(DRAFTING_PHASES))


async def _stop(ticker: "asyncio.Task[None]") -> None:
    ticker.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await ticker


async def drive_with_progress(
    operation: Awaitable[T],
    on_progress: ProgressCallback,
    interval_s: float = 0.8,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
) -> T:
    """Await ``operation`` while emitting coarse progress notifications.

    Emits 5/15 percent while starting, then random steps capped at 90 every
    ``interval_s`` seconds, and finally 100 with "Completed" or "Failed".
    The awaited result (or exception) is passed through unchanged.
    """
    on_progress(5, "Initializing...")
    await sleep(min(interval_s, 0.5))
    on_progress(15, "Analyzing context...")

    ticker = asyncio.create_task(_tick(on_progress, interval_s, sleep, rng or random.Random()))
    try:
        result = await operation
    except Exception:
        await _stop(ticker)
        on_progress(100, "Failed")
        raise
    finally:
        await _stop(ticker)
    on_progress(100, "Completed")
    return result


__all__ = ["DRAFTING_PHASES", "ProgressCallback", "Sleep", "drive_with_progress"]
