"""Bounded-concurrency scheduling for outbound registry calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class BatchOutcome(Generic[T]):
    """Non-throwing result slot for one scheduled item."""

    ok: bool
    value: T | None = None
    error: str | None = None


async def run_batched(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run ``worker`` over ``items`` in sequential chunks of ``batch_size``.

    Calls inside a chunk run concurrently; the next chunk starts only after the
    previous one has fully completed. Results keep the order of ``items``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    results: list[R] = []
    for start in range(0, len(items), batch_size):
        chunk = items[start : start + batch_size]
        logger.debug("batch.chunk", start=start, size=len(chunk), total=len(items))
        results.extend(await asyncio.gather(*(worker(item) for item in chunk)))
    return results


def guarded(worker: Callable[[T], Awaitable[R | None]]) -> Callable[[T], Awaitable[BatchOutcome[R]]]:
    """Wrap ``worker`` so failures and ``None`` become unsuccessful outcomes."""

    async def _run(item: T) -> BatchOutcome[R]:
        try:
            value = await worker(item)
        except Exception as exc:  # one item must not abort its chunk
            logger.warning("batch.item_failed", item=repr(item), error=str(exc))
            return BatchOutcome(ok=False, error=str(exc))
        if value is None:
            return BatchOutcome(ok=False)
        return BatchOutcome(ok=True, value=value)

    return _run
