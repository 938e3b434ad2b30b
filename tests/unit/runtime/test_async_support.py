# tests/unit/runtime/test_async_support.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import asyncio

import pytest

from phaseloop.core.errors import WorkerError
from phaseloop.runtime.async_support import run_in_asyncio, wait_for_message
from phaseloop.runtime.scheduler import PhaseScheduler
from phaseloop.runtime.worker import Worker

COUNT_TASK = "phaseloop.demos.counting:count_task"


@pytest.mark.asyncio
async def test_run_in_asyncio_does_not_block_the_loop():
    scheduler = PhaseScheduler()
    log = []
    scheduler.set_timeout(log.append, 0.05, "timer")

    heartbeat = []

    async def beat():
        for _ in range(3):
            heartbeat.append("beat")
            await asyncio.sleep(0.01)

    invoked, _ = await asyncio.gather(run_in_asyncio(scheduler), beat())
    assert invoked == 1
    assert log == ["timer"]
    assert heartbeat == ["beat"] * 3


@pytest.mark.asyncio
@pytest.mark.process
async def test_wait_for_message_resolves_with_worker_result():
    scheduler = PhaseScheduler()
    worker = Worker(scheduler, COUNT_TASK, {"limit": 10})
    message = await wait_for_message(worker, timeout=30)
    assert message == "The final count is 10"
    await run_in_asyncio(scheduler)
    assert worker.exit_code == 0


@pytest.mark.asyncio
@pytest.mark.process
async def test_wait_for_message_raises_worker_error():
    scheduler = PhaseScheduler()
    worker = Worker(scheduler, "phaseloop.demos.counting:missing_task")
    worker.on("error", lambda error: None)
    with pytest.raises(WorkerError):
        await wait_for_message(worker, timeout=30)
    await run_in_asyncio(scheduler)
