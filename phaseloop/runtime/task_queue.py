# phaseloop/runtime/task_queue.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import heapq
import threading
from collections import deque
from typing import Iterator, List, Optional, Tuple

from phaseloop.core.errors import SchedulerError
from phaseloop.core.tasks import QueueKind, ScheduledCallback


class _TaskQueueLock:
    """
    Internal context manager ensuring thread-safe access to a task queue.
    """

    def __init__(self, lock: threading.Lock) -> None:
        self._lock = lock

    def __enter__(self) -> None:
        self._lock.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._lock.release()


class _TimerHeap:
    """
    Internal heap ordering timer callbacks by deadline. Callbacks sharing a
    deadline keep their submission order.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, ScheduledCallback]] = []

    def push(self, deadline: float, callback: ScheduledCallback) -> None:
        heapq.heappush(self._heap, (deadline, callback.sequence, callback))

    def peek(self) -> Optional[Tuple[float, ScheduledCallback]]:
        """
        Return the earliest (deadline, callback) pair without removing it.
        """
        if not self._heap:
            return None
        deadline, _, callback = self._heap[0]
        return deadline, callback

    def pop(self) -> Optional[Tuple[float, ScheduledCallback]]:
        if not self._heap:
            return None
        deadline, _, callback = heapq.heappop(self._heap)
        return deadline, callback

    def clear(self) -> None:
        self._heap.clear()

    def __iter__(self) -> Iterator[ScheduledCallback]:
        return (callback for _, _, callback in self._heap)

    def __len__(self) -> int:
        return len(self._heap)


class TaskQueue:
    """
    FIFO queue of scheduled callbacks of a single kind. Safe to share between
    the loop thread and submitting threads.
    """

    def __init__(self, kind: QueueKind) -> None:
        """
        :param kind: The only callback kind this queue accepts.
        """
        self._kind = kind
        self._lock = threading.Lock()
        self._queue: deque = deque()

    def enqueue(self, callback: ScheduledCallback) -> None:
        """
        Add a callback to the tail of the queue.

        :param callback: The callback to enqueue.
        :raises SchedulerError: If the callback was submitted for another queue.
        """
        if callback.kind is not self._kind:
            raise SchedulerError(
                f"Cannot enqueue {callback.kind.name} callback on {self._kind.name} queue",
                {"expected": self._kind.name, "actual": callback.kind.name},
            )
        with _TaskQueueLock(self._lock):
            self._queue.append(callback)

    def dequeue(self) -> Optional[ScheduledCallback]:
        """
        Remove and return the oldest callback, or None if the queue is empty.
        """
        with _TaskQueueLock(self._lock):
            if self._queue:
                return self._queue.popleft()
            return None

    def clear(self) -> None:
        with _TaskQueueLock(self._lock):
            self._queue.clear()

    def __len__(self) -> int:
        with _TaskQueueLock(self._lock):
            return len(self._queue)

    @property
    def kind(self) -> QueueKind:
        """
        The callback kind accepted by this queue.
        """
        return self._kind
