import asyncio

import pytest

from stoneguard.app.services.concurrency import (
    ConcurrencyLimiter,
    QueueTimeoutError,
    RequestQueue,
)


def test_limiter_rejects_over_cap():
    limiter = ConcurrencyLimiter(max_concurrent=2, retry_after_seconds=10)

    first = limiter.try_acquire("PUT /quotes/{quote_id}/approve")
    second = limiter.try_acquire("PUT /quotes/{quote_id}/approve")
    third = limiter.try_acquire("PUT /quotes/{quote_id}/approve")

    assert first is not None and second is not None
    assert third is None
    assert limiter.active("PUT /quotes/{quote_id}/approve") == 2


def test_limiter_keys_are_independent():
    limiter = ConcurrencyLimiter(max_concurrent=1, retry_after_seconds=5)

    assert limiter.try_acquire("a") is not None
    assert limiter.try_acquire("b") is not None


def test_release_is_idempotent():
    limiter = ConcurrencyLimiter(max_concurrent=1, retry_after_seconds=5)
    slot = limiter.try_acquire("a")

    slot.release()
    slot.release()

    assert slot.released
    assert limiter.active("a") == 0
    assert limiter.try_acquire("a") is not None
    assert limiter.active("a") == 1


@pytest.mark.asyncio
async def test_queue_serializes_per_key():
    queue = RequestQueue(max_concurrent=1, timeout_seconds=5)
    order = []

    async def work(name, delay):
        async with queue.slot("admin-1"):
            order.append(f"{name}:start")
            await asyncio.sleep(delay)
            order.append(f"{name}:end")

    await asyncio.gather(work("first", 0.05), work("second", 0))

    assert order == ["first:start", "first:end", "second:start", "second:end"]
    assert queue.pending("admin-1") == 0


@pytest.mark.asyncio
async def test_queue_times_out_waiting_request():
    queue = RequestQueue(max_concurrent=1, timeout_seconds=0.05)
    holding = asyncio.Event()
    finish = asyncio.Event()

    async def holder():
        async with queue.slot("admin-1"):
            holding.set()
            await finish.wait()

    task = asyncio.create_task(holder())
    await holding.wait()

    with pytest.raises(QueueTimeoutError):
        async with queue.slot("admin-1"):
            pass

    finish.set()
    await task
    assert queue.pending("admin-1") == 0


@pytest.mark.asyncio
async def test_queue_releases_slot_on_error():
    queue = RequestQueue(max_concurrent=1, timeout_seconds=1)

    with pytest.raises(RuntimeError):
        async with queue.slot("admin-1"):
            raise RuntimeError("boom")

    async with queue.slot("admin-1"):
        assert queue.pending("admin-1") == 1
