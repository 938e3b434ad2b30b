# phaseloop/runtime/worker.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import importlib
import logging
import multiprocessing
import sys
import threading
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Union

from phaseloop.core.emitter import EventEmitter
from phaseloop.core.errors import ChannelClosedError, InvalidWorkerTransitionError, WorkerError
from phaseloop.runtime.channel import OneShotChannel

if TYPE_CHECKING:
    from concurrent.futures import Future
    from multiprocessing.connection import Connection

    from phaseloop.runtime.scheduler import PhaseScheduler

logger = logging.getLogger(__name__)

TaskRef = Union[str, Callable[["WorkerPort"], Any]]
Frame = Tuple[str, Any]


class WorkerState(Enum):
    """
    Lifecycle of a worker unit. States are visited in declaration order.
    """

    STARTING = auto()
    COMPUTING = auto()
    REPORTING = auto()
    TERMINATED = auto()


_TRANSITIONS: Dict[WorkerState, WorkerState] = {
    WorkerState.STARTING: WorkerState.COMPUTING,
    WorkerState.COMPUTING: WorkerState.REPORTING,
    WorkerState.REPORTING: WorkerState.TERMINATED,
}


def check_transition(source: WorkerState, target: WorkerState) -> None:
    """
    :raises InvalidWorkerTransitionError: Unless target directly follows source.
    """
    if _TRANSITIONS.get(source) is not target:
        raise InvalidWorkerTransitionError(source, target)


def task_path(task: TaskRef) -> str:
    """
    Normalise a task reference to its "package.module:function" import path.
    """
    if isinstance(task, str):
        return task
    module = getattr(task, "__module__", None)
    qualname = getattr(task, "__qualname__", None)
    if not module or not qualname or "<" in qualname:
        raise WorkerError(f"Task {task!r} is not importable by path", {"task": repr(task)})
    return f"{module}:{qualname}"


def resolve_task(path: str) -> Callable[["WorkerPort"], Any]:
    """
    Import the task named by ``path``.

    :raises WorkerError: If the path is malformed or does not name a callable.
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise WorkerError(f"Malformed task path '{path}', expected 'module:function'", {"task": path})
    try:
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as exc:
        raise WorkerError(f"Cannot load task '{path}': {exc}", {"task": path}) from exc
    if not callable(target):
        raise WorkerError(f"Task '{path}' is not callable", {"task": path})
    return target


class WorkerPort:
    """
    Child side of a worker. Gives the task its input data and the single
    outgoing message slot, and enforces the lifecycle order.
    """

    def __init__(self, conn: "Connection", worker_data: Optional[Dict[str, Any]] = None) -> None:
        self._conn = conn
        self._worker_data = dict(worker_data or {})
        self._state = WorkerState.STARTING
        self._posted = False

    @property
    def worker_data(self) -> Dict[str, Any]:
        return self._worker_data

    @property
    def state(self) -> WorkerState:
        return self._state

    def _send(self, kind: str, payload: Any = None) -> None:
        self._conn.send((kind, payload))

    def _transition(self, target: WorkerState) -> None:
        check_transition(self._state, target)
        self._state = target
        self._send("state", target.name)

    def begin(self) -> None:
        """
        Mark the start of the computation.
        """
        self._transition(WorkerState.COMPUTING)

    def post_message(self, value: Any) -> None:
        """
        Send the result to the parent. Allowed once per worker.

        :raises ChannelClosedError: On a second call.
        """
        if self._posted:
            raise ChannelClosedError("Worker already posted its message", {"state": self._state.name})
        if self._state is WorkerState.STARTING:
            self.begin()
        self._transition(WorkerState.REPORTING)
        self._posted = True
        self._send("message", value)

    def _finish(self) -> None:
        if not self._posted:
            raise WorkerError("Worker task returned without posting a message", {"state": self._state.name})
        self._transition(WorkerState.TERMINATED)

    def _fail(self, error: WorkerError) -> None:
        self._send("error", (str(error), error.details))


def _child_main(path: str, conn: "Connection", worker_data: Optional[Dict[str, Any]]) -> None:
    """
    Entry point of the child process.
    """
    port = WorkerPort(conn, worker_data)
    try:
        port._send("online")
        task = resolve_task(path)
        task(port)
        port._finish()
    except WorkerError as exc:
        port._fail(exc)
        conn.close()
        sys.exit(1)
    except Exception as exc:
        port._fail(WorkerError(f"Worker task '{path}' raised {type(exc).__name__}: {exc}", {"task": path}))
        conn.close()
        sys.exit(1)
    conn.close()


class Worker(EventEmitter):
    """
    Parent side of a worker unit: one child process running one task, which
    reports back exactly one message.

    Events (all delivered in the scheduler's Poll phase, on its thread):
        - "online": the child started running
        - "message" (value): the task's result
        - "error" (WorkerError): the child could not run its task or exited
          without reporting; replaces "message"
        - "exit" (int): the child process ended with this exit code

    The worker keeps the scheduler alive until the child has exited.
    """

    def __init__(
        self,
        scheduler: "PhaseScheduler",
        task: TaskRef,
        worker_data: Optional[Dict[str, Any]] = None,
        *,
        name: Optional[str] = None,
        mp_context: Optional[Any] = None,
    ) -> None:
        """
        Spawn the child immediately.

        :param scheduler: Scheduler that runs this worker's event handlers.
        :param task: "package.module:function" path, or an importable
            function, called in the child with a WorkerPort.
        :param worker_data: Picklable data exposed as port.worker_data.
        :param name: Process name.
        :param mp_context: multiprocessing context; the platform default
            otherwise.
        """
        super().__init__()
        self._scheduler = scheduler
        self._task = task_path(task)
        self._name = name or f"phaseloop-worker[{self._task}]"
        self._states: List[WorkerState] = [WorkerState.STARTING]
        self._channel: OneShotChannel[Any] = OneShotChannel(f"{self._name} message")
        self._exit_code: Optional[int] = None
        self._errored = False

        ctx = mp_context or multiprocessing.get_context()
        reader, writer = ctx.Pipe(duplex=False)
        self._conn = reader
        self._process = ctx.Process(
            target=_child_main,
            args=(self._task, writer, worker_data),
            name=self._name,
            daemon=True,
        )

        self._scheduler.ref()
        # Buffered output would otherwise be duplicated into a forked child.
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            self._process.start()
        except Exception as exc:
            # e.g. OSError from fork, or unpicklable worker_data under spawn
            writer.close()
            reader.close()
            error = WorkerError(
                f"Cannot start worker '{self._task}': {type(exc).__name__}: {exc}", {"task": self._task}
            )
            logger.error("%s", error)
            self._channel.fail(error)
            self._scheduler.post_completion(self._on_start_failure, error, label="worker start failure")
            return
        writer.close()
        logger.info("Worker %s started (pid %s)", self._name, self._process.pid)

        self._reader = threading.Thread(target=self._read_frames, name=f"{self._name}-reader", daemon=True)
        self._reader.start()

    # ------------------------------------------------------------------
    # Reader thread
    # ------------------------------------------------------------------

    def _read_frames(self) -> None:
        while True:
            try:
                frame: Frame = self._conn.recv()
            except (EOFError, OSError):
                break
            kind, payload = frame
            if kind == "message":
                self._channel.send(payload)
            elif kind == "error" and not self._channel.sent:
                message, details = payload
                self._channel.fail(WorkerError(message, details))
            self._scheduler.post_completion(self._dispatch, frame, label=f"worker {kind}")
        self._conn.close()
        self._process.join()
        self._scheduler.post_completion(self._on_exit, self._process.exitcode, label="worker exit")

    # ------------------------------------------------------------------
    # Scheduler thread
    # ------------------------------------------------------------------

    def _dispatch(self, frame: Frame) -> None:
        kind, payload = frame
        if kind == "online":
            self.emit("online")
        elif kind == "state":
            self._record_state(WorkerState[payload])
        elif kind == "message":
            self.emit("message", payload)
        elif kind == "error":
            message, details = payload
            self._errored = True
            self.emit("error", WorkerError(message, details))

    def _record_state(self, state: WorkerState) -> None:
        if state is not WorkerState.TERMINATED:
            check_transition(self._states[-1], state)
        self._states.append(state)

    def _on_exit(self, exit_code: Optional[int]) -> None:
        self._exit_code = exit_code
        if exit_code:
            logger.warning("Worker %s exited with code %s", self._name, exit_code)
        else:
            logger.info("Worker %s exited", self._name)
        try:
            if not self._channel.sent:
                error = WorkerError(
                    f"Worker '{self._task}' exited with code {exit_code} without reporting",
                    {"task": self._task, "exit_code": exit_code},
                )
                self._channel.fail(error)
                self._errored = True
                self.emit("error", error)
            if self._states[-1] is not WorkerState.TERMINATED:
                self._states.append(WorkerState.TERMINATED)
            self.emit("exit", exit_code)
        finally:
            self._scheduler.unref()

    def _on_start_failure(self, error: WorkerError) -> None:
        self._errored = True
        self._states.append(WorkerState.TERMINATED)
        try:
            self.emit("error", error)
        finally:
            self._scheduler.unref()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def task(self) -> str:
        return self._task

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def state(self) -> WorkerState:
        """The latest lifecycle state observed by the parent."""
        return self._states[-1]

    @property
    def states(self) -> List[WorkerState]:
        """Every lifecycle state observed so far, in order."""
        return list(self._states)

    @property
    def exit_code(self) -> Optional[int]:
        return self._exit_code

    @property
    def errored(self) -> bool:
        return self._errored

    @property
    def message_future(self) -> "Future[Any]":
        """
        Resolves with the worker's message, or fails with WorkerError. Set from
        the reader thread, so it does not require the scheduler to run.
        """
        return self._channel.future

    def terminate(self) -> None:
        """
        Kill the child process. Its "exit" event still fires.
        """
        if self._process.is_alive():
            self._process.terminate()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._process.pid is not None:
            self._process.join(timeout)
