# phaseloop/runtime/fs.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from phaseloop.core.emitter import EventEmitter

if TYPE_CHECKING:
    from phaseloop.runtime.scheduler import PhaseScheduler

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
ReadCallback = Callable[[Optional[BaseException], Any], None]


class IOExecutor:
    """
    Runs a blocking job and delivers its outcome to the Poll phase of a
    scheduler as a tracked completion.
    """

    def submit(self, scheduler: "PhaseScheduler", job: Callable[[], Any], on_done: ReadCallback) -> None:
        raise NotImplementedError()

    def shutdown(self) -> None:
        pass

    @staticmethod
    def _complete(scheduler: "PhaseScheduler", job: Callable[[], Any], on_done: ReadCallback) -> None:
        try:
            result = job()
        except Exception as exc:
            # Every failure must reach on_done, or the tracked I/O never settles.
            logger.debug("I/O job failed: %s", exc)
            scheduler.post_completion(on_done, exc, None, tracked=True)
            return
        scheduler.post_completion(on_done, None, result, tracked=True)


class ThreadedIOExecutor(IOExecutor):
    """
    Runs jobs on a small thread pool. Completion timing depends on the
    filesystem, so completions may land in a later loop iteration.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="phaseloop-io")

    def submit(self, scheduler: "PhaseScheduler", job: Callable[[], Any], on_done: ReadCallback) -> None:
        scheduler.begin_io()
        self._pool.submit(self._complete, scheduler, job, on_done)

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)


class InlineIOExecutor(IOExecutor):
    """
    Runs jobs synchronously on submission. The completion is still delivered
    through the Poll phase, so ordering is deterministic without threads.
    """

    def submit(self, scheduler: "PhaseScheduler", job: Callable[[], Any], on_done: ReadCallback) -> None:
        scheduler.begin_io()
        self._complete(scheduler, job, on_done)


def write_file_sync(path: PathLike, text: str, encoding: str = "utf8") -> None:
    """
    Overwrite ``path`` with ``text``. Errors propagate to the caller.
    """
    with open(path, "w", encoding=encoding) as fh:
        fh.write(text)


def read_file(
    scheduler: "PhaseScheduler",
    path: PathLike,
    callback: ReadCallback,
    encoding: Optional[str] = "utf8",
) -> None:
    """
    Read a whole file asynchronously. ``callback(error, data)`` runs in the
    Poll phase with ``(None, data)`` on success or ``(error, None)`` on
    failure.

    :param encoding: Text encoding, or None to receive bytes.
    """

    def _job() -> Any:
        if encoding is None:
            with open(path, "rb") as fh:
                return fh.read()
        with open(path, "r", encoding=encoding) as fh:
            return fh.read()

    scheduler.io_executor.submit(scheduler, _job, callback)


class ReadableStream(EventEmitter):
    """
    A byte stream over a file. A paused stream does not keep the scheduler
    alive; after resume() it does, until it is destroyed.

    Events:
        - "data" (bytes): the remaining content, once, after resume()
        - "end": after the last "data"
        - "error" (OSError): a read failed
        - "close": the handle was released; runs in the Close Callbacks phase
    """

    def __init__(self, scheduler: "PhaseScheduler", path: PathLike) -> None:
        """
        Open ``path`` for reading. Opening errors propagate.
        """
        super().__init__()
        self._scheduler = scheduler
        self._path = path
        self._fh = open(path, "rb")
        self._destroyed = False
        self._closed = False
        self._referenced = False

    @property
    def path(self) -> PathLike:
        return self._path

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def closed(self) -> bool:
        """True once the "close" event has been emitted."""
        return self._closed

    def resume(self) -> None:
        """
        Read the rest of the file asynchronously, emit "data" and "end", then
        destroy the stream.
        """
        if self._destroyed:
            return
        if not self._referenced:
            self._referenced = True
            self._scheduler.ref()
        self._scheduler.io_executor.submit(self._scheduler, self._fh.read, self._on_read)

    def _on_read(self, error: Optional[BaseException], data: Optional[bytes]) -> None:
        if self._destroyed:
            return
        if error is not None:
            self.destroy(error)
            return
        if data:
            self.emit("data", data)
        self.emit("end")
        self.destroy()

    def destroy(self, error: Optional[BaseException] = None) -> None:
        """
        Release the file handle and schedule the "close" event. Calling it
        again has no effect.

        :param error: Emitted as an "error" event before "close".
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._fh.close()
        if error is not None:
            self._scheduler.schedule_close(self.emit, "error", error, label="stream error")
        self._scheduler.schedule_close(self._emit_close, label="stream close")
        if self._referenced:
            self._referenced = False
            self._scheduler.unref()
        logger.debug("Stream over %s destroyed", self._path)

    def _emit_close(self) -> None:
        self._closed = True
        self.emit("close")
