# phaseloop/core/emitter.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List

Listener = Callable[..., None]


class _OnceWrapper:
    """
    Internal wrapper removing itself from the emitter before forwarding the
    first emission to the wrapped listener.
    """

    def __init__(self, emitter: "EventEmitter", name: str, listener: Listener) -> None:
        self._emitter = emitter
        self._name = name
        self.listener = listener

    def __call__(self, *args: Any) -> None:
        self._emitter.off(self._name, self)
        self.listener(*args)


class EventEmitter:
    """
    Manages named listeners. Streams and workers use it to expose their
    lifecycle ("close", "message", "error", "exit") to client code.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def on(self, name: str, listener: Listener) -> "EventEmitter":
        """
        Register a listener for every emission of ``name``.

        :param name: Event name.
        :param listener: Callable receiving the emitted arguments.
        """
        with self._lock:
            self._listeners.setdefault(name, []).append(listener)
        return self

    def once(self, name: str, listener: Listener) -> "EventEmitter":
        """
        Register a listener that is removed after its first invocation.
        """
        return self.on(name, _OnceWrapper(self, name, listener))

    def off(self, name: str, listener: Listener) -> "EventEmitter":
        """
        Remove a listener. Listeners registered with once() may be removed by
        passing the original callable.
        """
        with self._lock:
            listeners = self._listeners.get(name, [])
            for registered in listeners:
                if registered is listener or getattr(registered, "listener", None) is listener:
                    listeners.remove(registered)
                    break
        return self

    def listener_count(self, name: str) -> int:
        with self._lock:
            return len(self._listeners.get(name, []))

    def emit(self, name: str, *args: Any) -> bool:
        """
        Call every listener of ``name`` in registration order.

        An "error" emission with no listener raises the error instead.

        :return: True if at least one listener was called.
        """
        with self._lock:
            listeners = list(self._listeners.get(name, []))
        if not listeners:
            if name == "error":
                error = args[0] if args else None
                if isinstance(error, BaseException):
                    raise error
                raise RuntimeError(f"Unhandled error event: {error!r}")
            return False
        for listener in listeners:
            listener(*args)
        return True
