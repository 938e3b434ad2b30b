# phaseloop/core/tasks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import itertools
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Tuple

from phaseloop.core.errors import CallbackAlreadyInvokedError


class QueueKind(Enum):
    """
    The queue a callback was submitted to. Determines when it becomes eligible
    to run relative to every other kind.
    """

    PRIORITY_DEFERRED = auto()  # next_tick
    MICROTASK = auto()  # promise resolution
    TIMER = auto()
    IO = auto()
    CHECK = auto()  # set_immediate
    CLOSE = auto()


class Phase(Enum):
    """
    Stages of one loop iteration, in the order they are visited.
    """

    TIMERS = auto()
    POLL = auto()
    CHECK = auto()
    CLOSE_CALLBACKS = auto()


PHASE_ORDER = (Phase.TIMERS, Phase.POLL, Phase.CHECK, Phase.CLOSE_CALLBACKS)

_sequence = itertools.count()


def sequence_mark() -> int:
    """
    Return a sequence number greater than that of every callback created so far.
    """
    return next(_sequence)


class ScheduledCallback:
    """
    A zero-argument unit of deferred work tagged by the queue it was submitted
    to. Arguments are bound at submission time. The callback can be invoked
    exactly once; it is considered spent afterwards.
    """

    __slots__ = ("_fn", "_args", "_kind", "_label", "_sequence", "_invoked", "_cancelled", "_metadata")

    def __init__(
        self,
        fn: Callable[..., Any],
        kind: QueueKind,
        args: Tuple[Any, ...] = (),
        label: Optional[str] = None,
    ) -> None:
        """
        :param fn: The callable to run.
        :param kind: Queue the callback belongs to.
        :param args: Positional arguments passed to fn on invocation.
        :param label: Human readable name used in logs.
        """
        if not callable(fn):
            raise TypeError(f"Callback must be callable, got {type(fn).__name__}")
        self._fn = fn
        self._args = tuple(args)
        self._kind = kind
        self._label = label or getattr(fn, "__qualname__", repr(fn))
        self._sequence = next(_sequence)
        self._invoked = False
        self._cancelled = False
        self._metadata: Dict[str, Any] = {}

    @property
    def kind(self) -> QueueKind:
        return self._kind

    @property
    def label(self) -> str:
        return self._label

    @property
    def sequence(self) -> int:
        """Global submission order; lower numbers were submitted earlier."""
        return self._sequence

    @property
    def invoked(self) -> bool:
        return self._invoked

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def metadata(self) -> Dict[str, Any]:
        """Optional dictionary of additional callback data."""
        return self._metadata

    def cancel(self) -> None:
        """
        Prevent the callback from running. Cancelling a spent callback is a no-op.
        """
        self._cancelled = True

    def __call__(self) -> Any:
        if self._invoked:
            raise CallbackAlreadyInvokedError(self._label, self._sequence)
        self._invoked = True
        return self._fn(*self._args)

    def __repr__(self) -> str:
        return f"ScheduledCallback({self._kind.name}, #{self._sequence}, {self._label!r})"
