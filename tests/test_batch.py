import asyncio

import pytest

from scholarsync.services.batch import BatchOutcome, guarded, run_batched


@pytest.mark.asyncio
async def test_results_keep_input_order() -> None:
    delays = {"a": 0.03, "b": 0.0, "c": 0.02, "d": 0.0, "e": 0.01}

    async def worker(item: str) -> str:
        await asyncio.sleep(delays[item])
        return item.upper()

    results = await run_batched(["a", "b", "c", "d", "e"], 2, worker)
    assert results == ["A", "B", "C", "D", "E"]


@pytest.mark.asyncio
async def test_chunks_run_sequentially_with_bounded_concurrency() -> None:
    events: list[tuple[str, int]] = []
    active = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        events.append(("start", item))
        await asyncio.sleep(0.01 * (3 - item % 3))
        events.append(("end", item))
        active -= 1
        return item

    await run_batched(list(range(7)), 3, worker)

    assert peak == 3
    for chunk_start in (3, 6):
        first_start = events.index(("start", chunk_start))
        previous_ends = [events.index(("end", i)) for i in range(chunk_start - 3, chunk_start)]
        assert max(previous_ends) < first_start


@pytest.mark.asyncio
async def test_guarded_worker_converts_failures() -> None:
    async def worker(item: int) -> int | None:
        if item == 2:
            raise RuntimeError("registry exploded")
        if item == 3:
            return None
        return item * 10

    results = await run_batched([1, 2, 3, 4], 2, guarded(worker))
    assert results == [
        BatchOutcome(ok=True, value=10),
        BatchOutcome(ok=False, error="registry exploded"),
        BatchOutcome(ok=False),
        BatchOutcome(ok=True, value=40),
    ]


@pytest.mark.asyncio
async def test_empty_and_invalid_batches() -> None:
    async def worker(item: int) -> int:
        return item

    assert await run_batched([], 5, worker) == []
    with pytest.raises(ValueError):
        await run_batched([1], 0, worker)
