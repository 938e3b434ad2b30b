# phaseloop/runtime/async_support.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from phaseloop.runtime.scheduler import PhaseScheduler
    from phaseloop.runtime.worker import Worker


async def wait_for_message(worker: "Worker", timeout: Optional[float] = None) -> Any:
    """
    Await a worker's single message without blocking the asyncio loop.

    :raises asyncio.TimeoutError: If the message does not arrive in time.
    :raises WorkerError: If the worker failed instead of reporting.
    """
    return await asyncio.wait_for(asyncio.wrap_future(worker.message_future), timeout=timeout)


async def run_in_asyncio(scheduler: "PhaseScheduler", main: Optional[Callable[[], Any]] = None) -> int:
    """
    Drive a phase scheduler to completion from asyncio code. The scheduler runs
    on a thread of the default executor; its callbacks run there too.

    :return: The number of callbacks the scheduler invoked.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, scheduler.run, main)
