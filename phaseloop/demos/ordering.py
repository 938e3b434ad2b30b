# phaseloop/demos/ordering.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Callable, Optional

from phaseloop.config import DemoConfig
from phaseloop.runtime.fs import InlineIOExecutor, ReadableStream, ThreadedIOExecutor, read_file, write_file_sync
from phaseloop.runtime.scheduler import PhaseScheduler

logger = logging.getLogger(__name__)

Output = Callable[[str], None]

MAINLINE_START = "--- Start of script (mainline) ---"
MAINLINE_END = "--- End of script (mainline) ---"
TICK_1 = "process.nextTick 1 (Highest Priority)"
TICK_2 = "process.nextTick 2 (Highest Priority)"
MICROTASK_1 = "Promise.resolve().then() 1 (Microtask)"
MICROTASK_2 = "Promise.resolve().then() 2 (Microtask)"
TIMER = "setTimeout 1 (Timers Phase)"
POLL = "fs.readFile (Poll Phase)"
CHECK = "setImmediate (Check Phase)"
CLOSE = 'Stream "close" event (Close Callbacks Phase)'

EXPECTED_ORDER = (MAINLINE_START, MAINLINE_END, TICK_1, TICK_2, MICROTASK_1, MICROTASK_2, TIMER, POLL, CHECK, CLOSE)


def build_scheduler(config: DemoConfig) -> PhaseScheduler:
    executor = InlineIOExecutor() if config.io_mode == "inline" else ThreadedIOExecutor()
    return PhaseScheduler(io_executor=executor)


def run(config: DemoConfig, out: Output = print, scheduler: Optional[PhaseScheduler] = None) -> int:
    """
    Schedule one callback of every kind around two mainline prints and run the
    loop until it empties.

    :return: The number of callbacks the scheduler invoked.
    """
    scheduler = scheduler or build_scheduler(config)
    dummy_path = config.dummy_path

    def mainline() -> None:
        out(MAINLINE_START)

        write_file_sync(dummy_path, config.dummy_content)

        scheduler.set_timeout(lambda: out(TIMER), 0, label="timer")
        read_file(scheduler, dummy_path, lambda error, data: out(POLL))
        scheduler.set_immediate(lambda: out(CHECK), label="immediate")

        # The stream reads this module; it only exists to be torn down.
        stream = ReadableStream(scheduler, __file__)
        stream.on("close", lambda: out(CLOSE))

        scheduler.next_tick(lambda: out(TICK_1), label="tick 1")
        scheduler.resolve().then(lambda _: out(MICROTASK_1))
        scheduler.next_tick(lambda: out(TICK_2), label="tick 2")
        scheduler.resolve().then(lambda _: out(MICROTASK_2))

        stream.destroy()

        out(MAINLINE_END)

    logger.debug("Ordering demo writing %s", dummy_path)
    try:
        return scheduler.run(mainline)
    finally:
        scheduler.io_executor.shutdown()
