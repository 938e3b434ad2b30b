# phaseloop/runtime/scheduler.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Any, Callable, Optional

from phaseloop.core.errors import SchedulerError
from phaseloop.core.tasks import Phase, QueueKind, ScheduledCallback, sequence_mark
from phaseloop.runtime.task_queue import TaskQueue
from phaseloop.runtime.timers import MonotonicClock, TimeoutScheduler, Timer, _TimeSource

if TYPE_CHECKING:
    from phaseloop.runtime.fs import IOExecutor

logger = logging.getLogger(__name__)


class _Resolved:
    """
    An already-fulfilled value. then() queues its reaction as a microtask.
    Reactions do not chain.
    """

    def __init__(self, scheduler: "PhaseScheduler", value: Any) -> None:
        self._scheduler = scheduler
        self._value = value

    def then(self, on_fulfilled: Callable[[Any], Any]) -> None:
        self._scheduler.queue_microtask(on_fulfilled, self._value)


class PhaseScheduler:
    """
    Explicit event loop. Holds one queue per kind of deferred work and runs them
    in a fixed order:

    - the mainline, to completion;
    - every priority-deferred callback, then every microtask, until both are
      empty (the micro-drain);
    - loop iterations visiting Timers, Poll, Check and Close Callbacks, with a
      micro-drain after every single callback.

    The loop ends when no timers, immediates, close callbacks, in-flight I/O or
    referenced handles remain. Exceptions raised by callbacks are not caught.
    """

    def __init__(self, clock: Optional[_TimeSource] = None, io_executor: Optional["IOExecutor"] = None) -> None:
        """
        :param clock: Time source for timers. Defaults to a MonotonicClock.
        :param io_executor: Runs file reads. Defaults to a ThreadedIOExecutor
            created on first use.
        """
        self._clock = clock or MonotonicClock()
        self._io_executor = io_executor

        self._ticks = TaskQueue(QueueKind.PRIORITY_DEFERRED)
        self._microtasks = TaskQueue(QueueKind.MICROTASK)
        self._immediates = TaskQueue(QueueKind.CHECK)
        self._closing = TaskQueue(QueueKind.CLOSE)
        self._timers = TimeoutScheduler(self._clock)
        self._inbox: "queue.Queue[Optional[ScheduledCallback]]" = queue.Queue()

        self._lock = threading.Lock()
        self._pending_io = 0
        self._refs = 0
        self._running = False
        self._stopping = False
        self._invoked = 0
        self._iteration = 0
        self._phase: Optional[Phase] = None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def next_tick(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None) -> ScheduledCallback:
        """
        Queue a priority-deferred callback. Runs before any microtask.
        """
        callback = ScheduledCallback(fn, QueueKind.PRIORITY_DEFERRED, args, label)
        self._ticks.enqueue(callback)
        return callback

    def queue_microtask(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None) -> ScheduledCallback:
        """
        Queue a microtask. Runs after the priority-deferred queue drains.
        """
        callback = ScheduledCallback(fn, QueueKind.MICROTASK, args, label)
        self._microtasks.enqueue(callback)
        return callback

    def resolve(self, value: Any = None) -> _Resolved:
        """
        Return an already-resolved value whose then() reactions run as
        microtasks.
        """
        return _Resolved(self, value)

    def set_timeout(
        self, fn: Callable[..., Any], delay: Optional[float] = 0, *args: Any, label: Optional[str] = None
    ) -> Timer:
        """
        Run ``fn`` in the Timers phase once ``delay`` seconds have elapsed.
        """
        callback = ScheduledCallback(fn, QueueKind.TIMER, args, label)
        return self._timers.schedule(callback, delay)

    def clear_timeout(self, timer: Optional[Timer]) -> None:
        if timer is not None:
            timer.cancel()

    def set_immediate(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None) -> ScheduledCallback:
        """
        Run ``fn`` in the Check phase of the current or next iteration.
        """
        callback = ScheduledCallback(fn, QueueKind.CHECK, args, label)
        self._immediates.enqueue(callback)
        return callback

    def clear_immediate(self, callback: Optional[ScheduledCallback]) -> None:
        if callback is not None:
            callback.cancel()

    def schedule_close(self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None) -> ScheduledCallback:
        """
        Run ``fn`` in the Close Callbacks phase. Used by handles being torn down.
        """
        callback = ScheduledCallback(fn, QueueKind.CLOSE, args, label)
        self._closing.enqueue(callback)
        return callback

    def begin_io(self) -> None:
        """
        Record one in-flight I/O operation. The loop stays alive until the
        matching tracked completion has run.
        """
        with self._lock:
            self._pending_io += 1

    def post_completion(
        self, fn: Callable[..., Any], *args: Any, label: Optional[str] = None, tracked: bool = False
    ) -> ScheduledCallback:
        """
        Hand a completion to the Poll phase. Safe to call from any thread.

        :param tracked: True when the completion finishes an operation
            registered with begin_io().
        """
        callback = ScheduledCallback(fn, QueueKind.IO, args, label)
        callback.metadata["tracked"] = tracked
        self._inbox.put(callback)
        return callback

    def ref(self) -> None:
        """
        Keep the loop alive for an open handle (a stream or a worker).
        """
        with self._lock:
            self._refs += 1

    def unref(self) -> None:
        with self._lock:
            if self._refs == 0:
                raise SchedulerError("unref() called without a matching ref()")
            self._refs -= 1
        # Wake a poll phase blocked on the inbox so liveness is re-evaluated.
        self._inbox.put(None)

    def stop(self) -> None:
        """
        Ask the loop to exit after the callback currently running. Called
        before run(), it lets the next run() execute its mainline and drain,
        then return without entering the phase loop.
        """
        self._stopping = True
        self._inbox.put(None)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def clock(self) -> _TimeSource:
        return self._clock

    @property
    def io_executor(self) -> "IOExecutor":
        if self._io_executor is None:
            from phaseloop.runtime.fs import ThreadedIOExecutor

            self._io_executor = ThreadedIOExecutor()
        return self._io_executor

    @property
    def running(self) -> bool:
        return self._running

    @property
    def phase(self) -> Optional[Phase]:
        """The phase currently executing, None outside the loop."""
        return self._phase

    @property
    def iteration(self) -> int:
        return self._iteration

    @property
    def pending_io(self) -> int:
        with self._lock:
            return self._pending_io

    @property
    def refs(self) -> int:
        with self._lock:
            return self._refs

    def is_alive(self) -> bool:
        """
        True while any phase still has work or a handle keeps the loop open.
        """
        with self._lock:
            outstanding = self._pending_io > 0 or self._refs > 0
        return bool(
            outstanding
            or len(self._timers)
            or len(self._immediates)
            or len(self._closing)
            or self._inbox.qsize()
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, main: Optional[Callable[[], Any]] = None) -> int:
        """
        Run ``main`` (if given) and then the loop until no work remains.

        :return: The number of scheduled callbacks invoked.
        :raises SchedulerError: If the loop is already running.
        """
        if self._running:
            raise SchedulerError("Scheduler is already running")
        self._running = True
        invoked_before = self._invoked
        logger.info("Scheduler starting")
        try:
            if main is not None:
                main()
            self._drain_microtasks()

            while not self._stopping and self.is_alive():
                self._iteration += 1
                logger.debug("Loop iteration %d", self._iteration)
                self._run_timers()
                self._run_poll()
                self._run_snapshot(Phase.CHECK, self._immediates)
                self._run_snapshot(Phase.CLOSE_CALLBACKS, self._closing)
        finally:
            self._phase = None
            self._running = False
            self._stopping = False
        invoked = self._invoked - invoked_before
        logger.info("Scheduler exiting after %d callbacks", invoked)
        return invoked

    def _invoke(self, callback: ScheduledCallback, drain: bool = True) -> None:
        if callback.cancelled:
            logger.debug("Skipping cancelled %r", callback)
            return
        logger.debug("Invoking %r", callback)
        try:
            callback()
        except Exception:
            logger.error("Uncaught exception in %r", callback, exc_info=True)
            raise
        self._invoked += 1
        if drain:
            self._drain_microtasks()

    def _drain_microtasks(self) -> None:
        # Ticks first, then the whole microtask queue, until both stay empty.
        while len(self._ticks) or len(self._microtasks):
            while True:
                callback = self._ticks.dequeue()
                if callback is None:
                    break
                self._invoke(callback, drain=False)
            while True:
                callback = self._microtasks.dequeue()
                if callback is None:
                    break
                self._invoke(callback, drain=False)

    def _run_timers(self) -> None:
        self._phase = Phase.TIMERS
        due = self._timers.pop_expired(self._clock.now(), sequence_mark())
        for callback in due:
            if self._stopping:
                break
            self._invoke(callback)

    def _run_poll(self) -> None:
        self._phase = Phase.POLL
        if self._run_ready_completions():
            return
        timeout = self._poll_timeout()
        if timeout == 0:
            return

        with self._lock:
            outstanding = self._pending_io > 0 or self._refs > 0
        if not outstanding:
            # Only timers remain: wait for the earliest one.
            self._sleep_until_next_timer()
            return

        try:
            callback = self._inbox.get(timeout=timeout)
        except queue.Empty:
            self._sleep_until_next_timer()
            return
        if callback is not None:
            self._run_completion(callback)
        self._run_ready_completions()

    def _poll_timeout(self) -> Optional[float]:
        if self._stopping or len(self._immediates) or len(self._closing):
            return 0
        deadline = self._timers.next_deadline()
        if deadline is None:
            return None
        return max(0.0, deadline - self._clock.now())

    def _sleep_until_next_timer(self) -> None:
        deadline = self._timers.next_deadline()
        if deadline is not None:
            self._clock.sleep(max(0.0, deadline - self._clock.now()))

    def _run_ready_completions(self) -> int:
        ran = 0
        for _ in range(self._inbox.qsize()):
            if self._stopping:
                break
            try:
                callback = self._inbox.get_nowait()
            except queue.Empty:
                break
            if callback is None:
                continue
            self._run_completion(callback)
            ran += 1
        return ran

    def _run_completion(self, callback: ScheduledCallback) -> None:
        if callback.metadata.get("tracked"):
            with self._lock:
                self._pending_io -= 1
        self._invoke(callback)

    def _run_snapshot(self, phase: Phase, task_queue: TaskQueue) -> None:
        # Callbacks added while the phase runs wait for the next iteration.
        self._phase = phase
        for _ in range(len(task_queue)):
            if self._stopping:
                break
            callback = task_queue.dequeue()
            if callback is None:
                break
            self._invoke(callback)
