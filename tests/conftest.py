# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
from typing import List

import pytest

from phaseloop.config import DemoConfig
from phaseloop.runtime.fs import InlineIOExecutor
from phaseloop.runtime.scheduler import PhaseScheduler
from phaseloop.runtime.timers import ManualClock


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "process: test spawns a worker process")


class Recorder:
    """Collects printed lines in place of print()."""

    def __init__(self) -> None:
        self.lines: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            self.lines.append(line)


@pytest.fixture
def manual_clock():
    """A clock that only moves when advanced."""
    return ManualClock()


@pytest.fixture
def scheduler(manual_clock):
    """A fully deterministic scheduler: manual time and inline file reads."""
    return PhaseScheduler(clock=manual_clock, io_executor=InlineIOExecutor())


@pytest.fixture
def realtime_scheduler():
    """A scheduler on real time with threaded file reads."""
    s = PhaseScheduler()
    yield s
    s.io_executor.shutdown()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def demo_config(tmp_path):
    """Demo settings writing into a temporary directory with a short worker loop."""
    return DemoConfig(workdir=tmp_path, io_mode="inline", worker_limit=1000)


@pytest.fixture(autouse=True)
def cleanup_threads():
    yield
    # Cleanup any remaining threads after each test
    for thread in threading.enumerate():
        if thread != threading.current_thread() and thread.is_alive() and not thread.daemon:
            thread.join(timeout=1.0)
