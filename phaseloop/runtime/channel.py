# phaseloop/runtime/channel.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Generic, Optional, TypeVar

from phaseloop.core.errors import ChannelClosedError

T = TypeVar("T")


class OneShotChannel(Generic[T]):
    """
    A channel that carries exactly one value (or one error) over its lifetime.
    The receiving side observes it through a concurrent.futures.Future, so it
    can be awaited from asyncio, waited on from a thread, or polled.
    """

    def __init__(self, name: str = "channel") -> None:
        self._name = name
        self._future: "Future[T]" = Future()
        self._lock = threading.Lock()
        self._sent = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def sent(self) -> bool:
        with self._lock:
            return self._sent

    @property
    def future(self) -> "Future[T]":
        return self._future

    def _claim(self) -> None:
        with self._lock:
            if self._sent:
                raise ChannelClosedError(
                    f"{self._name} already delivered its value",
                    {"channel": self._name},
                )
            self._sent = True

    def send(self, value: T) -> None:
        """
        Deliver the value.

        :raises ChannelClosedError: If a value or error was already delivered.
        """
        self._claim()
        self._future.set_result(value)

    def fail(self, error: BaseException) -> None:
        """
        Deliver an error in place of a value.

        :raises ChannelClosedError: If a value or error was already delivered.
        """
        self._claim()
        self._future.set_exception(error)

    def receive(self, timeout: Optional[float] = None) -> T:
        """
        Block until the value arrives.

        :raises concurrent.futures.TimeoutError: If nothing arrives in time.
        :raises Exception: The error delivered with fail().
        """
        return self._future.result(timeout=timeout)
