# phaseloop/runtime/timers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
import time
from typing import List, Optional

from phaseloop.core.tasks import QueueKind, ScheduledCallback
from phaseloop.runtime.task_queue import _TimerHeap


class _TimeSource:
    """
    Abstract definition for obtaining the current time. Allows the scheduler to
    run against real time or a deterministic clock.
    """

    def now(self) -> float:
        raise NotImplementedError()

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError()


class MonotonicClock(_TimeSource):
    """Real time, immune to wall clock adjustments."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class ManualClock(_TimeSource):
    """
    Deterministic clock for tests. Time only moves when advanced, and sleeping
    advances it instantly.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        with self._lock:
            self._now += seconds

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.advance(seconds)


class Timer:
    """
    Represents one scheduled timer callback. Returned by set_timeout() so the
    caller can cancel it.
    """

    def __init__(self, callback: ScheduledCallback, deadline: float, clock: _TimeSource) -> None:
        """
        :param callback: The TIMER callback to run on expiry.
        :param deadline: Clock time at which the timer becomes due.
        :param clock: Time source used for expiry checks.
        """
        self._callback = callback
        self._deadline = deadline
        self._clock = clock

    def is_expired(self) -> bool:
        """
        Check if the timer has reached its deadline.
        """
        return self._clock.now() >= self._deadline

    def cancel(self) -> None:
        """
        Stop the timer from firing. Has no effect once it has fired.
        """
        self._callback.cancel()

    @property
    def deadline(self) -> float:
        return self._deadline

    @property
    def callback(self) -> ScheduledCallback:
        return self._callback

    @property
    def cancelled(self) -> bool:
        return self._callback.cancelled

    @property
    def fired(self) -> bool:
        return self._callback.invoked

    def __repr__(self) -> str:
        return f"Timer(deadline={self._deadline:.6f}, callback={self._callback!r})"


class TimeoutScheduler:
    """
    Holds pending timers in deadline order and hands out the ones that are due.
    """

    def __init__(self, clock: _TimeSource) -> None:
        self._clock = clock
        self._heap = _TimerHeap()
        self._lock = threading.Lock()

    def schedule(self, callback: ScheduledCallback, delay: Optional[float] = 0) -> Timer:
        """
        Add a TIMER callback due ``delay`` seconds from now. Negative or missing
        delays are treated as zero.

        :return: The Timer handle.
        """
        if callback.kind is not QueueKind.TIMER:
            raise ValueError(f"Expected a TIMER callback, got {callback.kind.name}")
        delay = max(0.0, float(delay or 0))
        timer = Timer(callback, self._clock.now() + delay, self._clock)
        with self._lock:
            self._heap.push(timer.deadline, callback)
        return timer

    def pop_expired(self, now: float, limit_sequence: Optional[int] = None) -> List[ScheduledCallback]:
        """
        Remove and return every live timer callback due at ``now``.

        :param now: The time the timers phase started.
        :param limit_sequence: Only callbacks submitted before this sequence
            number are returned, so timers added while the phase runs wait for
            the next iteration.
        :return: Due callbacks in deadline, then submission, order.
        """
        due: List[ScheduledCallback] = []
        with self._lock:
            while True:
                head = self._heap.peek()
                if head is None:
                    break
                deadline, callback = head
                if callback.cancelled:
                    self._heap.pop()
                    continue
                if deadline > now:
                    break
                if limit_sequence is not None and callback.sequence >= limit_sequence:
                    break
                self._heap.pop()
                due.append(callback)
        return due

    def next_deadline(self) -> Optional[float]:
        """
        The deadline of the earliest live timer, or None when none is pending.
        """
        with self._lock:
            while True:
                head = self._heap.peek()
                if head is None:
                    return None
                deadline, callback = head
                if callback.cancelled:
                    self._heap.pop()
                    continue
                return deadline

    def clear(self) -> None:
        with self._lock:
            self._heap.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for callback in self._heap if not callback.cancelled)
