"""
Runtime package: the phase scheduler and the handles that feed it.

Architecture:
- PhaseScheduler owns one queue per kind of deferred work
- TimeoutScheduler orders timers against an injectable clock
- IO executors deliver file reads to the Poll phase
- ReadableStream and Worker keep the loop alive while open
- OneShotChannel carries a worker's single result

Cross-cutting:
- Callback exceptions propagate out of run()
- DEBUG logging per callback invocation
- Thread-safe submission from I/O and worker reader threads
"""

from .async_support import run_in_asyncio, wait_for_message
from .channel import OneShotChannel
from .fs import InlineIOExecutor, ReadableStream, ThreadedIOExecutor, read_file, write_file_sync
from .scheduler import PhaseScheduler
from .timers import ManualClock, MonotonicClock, Timer, TimeoutScheduler
from .worker import Worker, WorkerPort, WorkerState

__all__ = [
    "run_in_asyncio",
    "wait_for_message",
    "OneShotChannel",
    "InlineIOExecutor",
    "ReadableStream",
    "ThreadedIOExecutor",
    "read_file",
    "write_file_sync",
    "PhaseScheduler",
    "ManualClock",
    "MonotonicClock",
    "Timer",
    "TimeoutScheduler",
    "Worker",
    "WorkerPort",
    "WorkerState",
]
