# phaseloop/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Dict, Optional


class PhaseLoopError(Exception):
    """
    Base exception class for errors raised by the phase scheduler and its
    collaborators.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details: Dict[str, Any] = details or {}


class SchedulerError(PhaseLoopError):
    """
    Raised when the scheduler is used incorrectly, e.g. re-entering run() or
    submitting to a queue of the wrong kind.
    """


class CallbackAlreadyInvokedError(SchedulerError):
    """
    Raised when a scheduled callback is invoked a second time.
    """

    def __init__(self, label: str, sequence: int) -> None:
        super().__init__(
            f"Callback '{label}' (#{sequence}) has already run",
            {"label": label, "sequence": sequence},
        )
        self.label = label
        self.sequence = sequence


class ChannelClosedError(PhaseLoopError):
    """
    Raised when a value is sent on a one-shot channel that already delivered.
    """


class WorkerError(PhaseLoopError):
    """
    Delivered through a worker's "error" event when the child cannot be created,
    its task fails, or it exits without reporting.
    """


class InvalidWorkerTransitionError(WorkerError):
    """
    Raised when a worker lifecycle transition skips or revisits a state.
    """

    def __init__(self, source: Any, target: Any) -> None:
        super().__init__(
            f"Invalid worker transition {source.name} -> {target.name}",
            {"source": source.name, "target": target.name},
        )
        self.source = source
        self.target = target
