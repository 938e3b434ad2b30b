# phaseloop/demos/handoff.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Callable, Optional

from phaseloop.config import DemoConfig
from phaseloop.demos.counting import count
from phaseloop.runtime.scheduler import PhaseScheduler
from phaseloop.runtime.worker import Worker

logger = logging.getLogger(__name__)

Output = Callable[[str], None]

COUNT_TASK = "phaseloop.demos.counting:count_task"

MAIN_STARTING = "Main thread: Starting."
MAIN_WORKER_STARTED = "Main thread: Worker started. I can do other things now."
MAIN_RECEIVED = "Main thread: Received message from worker - {message}"


def run(
    config: DemoConfig,
    out: Output = print,
    scheduler: Optional[PhaseScheduler] = None,
    task: str = COUNT_TASK,
) -> Worker:
    """
    Spawn the counting worker, do a small count on this side without waiting,
    then run the loop until the worker has reported and exited.

    :return: The finished worker.
    """
    scheduler = scheduler or PhaseScheduler()
    handles = {}

    def mainline() -> None:
        out(MAIN_STARTING)

        worker = Worker(scheduler, task, {"limit": config.worker_limit})
        worker.on("message", lambda message: out(MAIN_RECEIVED.format(message=message)))
        handles["worker"] = worker

        out(MAIN_WORKER_STARTED)

        out(str(count(config.parent_limit)))

    scheduler.run(mainline)
    worker = handles["worker"]
    logger.debug("Handoff demo finished, worker exit code %s", worker.exit_code)
    return worker
