# tests/integration/test_handoff_demo.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import re

import pytest

from phaseloop.config import DemoConfig
from phaseloop.core.errors import WorkerError
from phaseloop.demos import handoff
from phaseloop.runtime.worker import WorkerState

pytestmark = pytest.mark.process


def test_parent_work_precedes_worker_message(demo_config, recorder):
    worker = handoff.run(demo_config, out=recorder)
    assert recorder.lines == [
        handoff.MAIN_STARTING,
        handoff.MAIN_WORKER_STARTED,
        "1000",
        "Main thread: Received message from worker - The final count is 1000",
    ]
    assert worker.exit_code == 0
    assert worker.state is WorkerState.TERMINATED


def test_message_appears_exactly_once(demo_config, recorder):
    handoff.run(demo_config, out=recorder)
    matches = [line for line in recorder.lines if re.search(r"The final count is 1000\b", line)]
    assert len(matches) == 1


def test_zero_limit_still_reports(tmp_path, recorder):
    config = DemoConfig(workdir=tmp_path, worker_limit=0)
    handoff.run(config, out=recorder)
    assert recorder.lines[-1] == "Main thread: Received message from worker - The final count is 0"


def test_missing_task_surfaces_as_error(demo_config, recorder):
    with pytest.raises(WorkerError):
        handoff.run(demo_config, out=recorder, task="phaseloop.demos.missing:count_task")
    assert recorder.lines == [handoff.MAIN_STARTING, handoff.MAIN_WORKER_STARTED, "1000"]
