# phaseloop/core/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from .emitter import EventEmitter
from .errors import (
    CallbackAlreadyInvokedError,
    ChannelClosedError,
    InvalidWorkerTransitionError,
    PhaseLoopError,
    SchedulerError,
    WorkerError,
)
from .tasks import Phase, QueueKind, ScheduledCallback

__all__ = [
    "EventEmitter",
    "CallbackAlreadyInvokedError",
    "ChannelClosedError",
    "InvalidWorkerTransitionError",
    "PhaseLoopError",
    "SchedulerError",
    "WorkerError",
    "Phase",
    "QueueKind",
    "ScheduledCallback",
]
