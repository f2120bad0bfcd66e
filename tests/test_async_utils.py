"""
Tests for async_utils module.

Covers run_sync, run_sync_limited, and gather_limited.
"""

import asyncio
import threading
import time

import pytest

from cutsheet_sync.core.async_utils import (
    gather_limited,
    run_sync,
    run_sync_limited,
)


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


def _sync_identity(x):
    """Return input unchanged."""
    return x


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_runs_off_the_event_loop_thread():
    loop_thread = threading.get_ident()
    worker_thread = await run_sync(threading.get_ident)
    assert worker_thread != loop_thread


async def test_run_sync_limited_with_semaphore():
    result = await run_sync_limited(asyncio.Semaphore(2), _sync_add, 10, 20)
    assert result == 30


async def test_run_sync_limited_without_semaphore():
    """run_sync_limited runs unbounded when semaphore is None."""
    result = await run_sync_limited(None, _sync_add, 1, 2)
    assert result == 3


async def test_run_sync_limited_bounds_concurrency():
    """No more than the semaphore's value run at once."""
    lock = threading.Lock()
    active = 0
    peak = 0

    def _work(_):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    semaphore = asyncio.Semaphore(2)
    await gather_limited(
        [run_sync_limited(semaphore, _work, i) for i in range(8)]
    )

    assert 1 <= peak <= 2


async def test_gather_limited_preserves_order():
    """gather_limited returns results in input order."""
    semaphore = asyncio.Semaphore(3)
    results = await gather_limited(
        [run_sync_limited(semaphore, _sync_identity, i) for i in range(10)]
    )
    assert results == list(range(10))


async def test_gather_limited_empty():
    assert await gather_limited([]) == []


async def test_gather_limited_propagates_exceptions():
    def _boom():
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await gather_limited(
            [
                run_sync_limited(None, _sync_identity, 1),
                run_sync_limited(None, _boom),
            ]
        )
