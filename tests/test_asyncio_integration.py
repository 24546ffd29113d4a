"""
Tests running engines on a real asyncio event loop.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from dothunk import create


@pytest.mark.asyncio
async def test_await_plain_thunk():
    thunk = create()

    assert await thunk(21)(lambda error, value: value * 2) == 42


@pytest.mark.asyncio
async def test_await_coroutine_object():
    thunk = create()

    async def compute(n):
        await asyncio.sleep(0.01)
        return n + 1

    assert await thunk(compute(1)) == 2


@pytest.mark.asyncio
async def test_async_function_is_called():
    thunk = create()

    async def compute():
        return "called"

    assert await thunk(compute) == "called"


@pytest.mark.asyncio
async def test_generator_yielding_asyncio_future():
    thunk = create()
    loop = asyncio.get_running_loop()

    def worker():
        future = loop.create_future()
        loop.call_later(0.01, future.set_result, 5)
        value = yield future
        more = yield asyncio.sleep(0.01, result=10)
        return value + more

    assert await thunk(worker) == 15


@pytest.mark.asyncio
async def test_race_with_real_delays():
    thunk = create()

    def after(seconds, value):
        yield thunk.delay(seconds)
        return value

    assert await thunk.race(after(0.05, "slow"), after(0.01, "fast")) == "fast"


@pytest.mark.asyncio
async def test_all_runs_members_concurrently():
    thunk = create()
    loop = asyncio.get_running_loop()

    def after(seconds, value):
        yield thunk.delay(seconds)
        return value

    started = loop.time()
    result = await thunk.all([after(0.05, n) for n in range(5)])

    assert result == [0, 1, 2, 3, 4]
    assert loop.time() - started < 0.2


@pytest.mark.asyncio
async def test_error_is_raised_by_await():
    thunk = create()

    with pytest.raises(ValueError, match="awaited"):
        await thunk.digest(ValueError("awaited"))


@pytest.mark.asyncio
async def test_cancelled_asyncio_future_keeps_its_error_class():
    thunk = create()
    future = asyncio.get_running_loop().create_future()
    future.cancel()
    errors = []

    await thunk(future)(lambda error, value: errors.append(error))

    assert isinstance(errors[0], asyncio.CancelledError)


@pytest.mark.asyncio
async def test_multiple_values_await_as_list():
    thunk = create()

    assert await thunk(lambda callback: callback(None, 1, 2)) == [1, 2]


@pytest.mark.asyncio
async def test_thread_pool_future_settles_on_loop_thread():
    thunk = create()
    loop_thread = threading.get_ident()
    settled_on = []

    def blocking():
        return threading.get_ident()

    with ThreadPoolExecutor(max_workers=1) as executor:
        worker_thread = await thunk(executor.submit(blocking))(
            lambda error, value: settled_on.append(threading.get_ident()) or value
        )

    assert worker_thread != loop_thread
    assert settled_on == [loop_thread]


@pytest.mark.asyncio
async def test_onstop_is_notified():
    stops = []
    thunk = create(onstop=stops.append)

    def stopper(error, value):
        thunk.stop("shutting down")

    thunk(1)(stopper)
    await asyncio.sleep(0)

    assert len(stops) == 1
    assert stops[0].message == "shutting down"
