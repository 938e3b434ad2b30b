# phaseloop/demos/counting.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Task run inside the worker process of the handoff demo."""

from phaseloop.config import TEN_BILLION
from phaseloop.runtime.worker import WorkerPort

START_NOTICE = "Worker thread: I'm starting my heavy task!"
FINISH_NOTICE = "Worker thread: Heavy task finished."


def result_message(total: int) -> str:
    return f"The final count is {total}"


def count(limit: int) -> int:
    total = 0
    for _ in range(limit):
        total += 1
    return total


def count_task(port: WorkerPort) -> None:
    """
    Count to ``worker_data["limit"]`` (ten billion by default) with no yield
    points, then report the total once.
    """
    limit = int(port.worker_data.get("limit", TEN_BILLION))
    print(START_NOTICE, flush=True)
    port.begin()
    total = count(limit)
    print(FINISH_NOTICE, flush=True)
    port.post_message(result_message(total))
