# tests/unit/runtime/test_task_queue.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

import pytest

from phaseloop.core.errors import SchedulerError
from phaseloop.core.tasks import QueueKind, ScheduledCallback
from phaseloop.runtime.task_queue import TaskQueue, _TaskQueueLock, _TimerHeap


def _cb(kind=QueueKind.MICROTASK, label=None):
    return ScheduledCallback(lambda: None, kind, label=label)


def test_task_queue_fifo():
    q = TaskQueue(QueueKind.MICROTASK)
    first, second = _cb(label="a"), _cb(label="b")
    q.enqueue(first)
    q.enqueue(second)
    assert len(q) == 2
    assert q.dequeue() is first
    assert q.dequeue() is second
    assert q.dequeue() is None, "Queue should be empty now."


def test_task_queue_clear():
    q = TaskQueue(QueueKind.MICROTASK)
    q.enqueue(_cb())
    q.clear()
    assert q.dequeue() is None, "Clearing should remove all callbacks."


def test_task_queue_rejects_other_kinds():
    q = TaskQueue(QueueKind.CHECK)
    with pytest.raises(SchedulerError) as exc_info:
        q.enqueue(_cb(QueueKind.CLOSE))
    assert exc_info.value.details == {"expected": "CHECK", "actual": "CLOSE"}
    assert q.kind is QueueKind.CHECK


def test_task_queue_lock():
    mock_lock = MagicMock()

    with _TaskQueueLock(mock_lock):
        mock_lock.acquire.assert_called_once()
    mock_lock.release.assert_called_once()


def test_task_queue_lock_exception():
    mock_lock = MagicMock()

    with pytest.raises(RuntimeError):
        with _TaskQueueLock(mock_lock):
            raise RuntimeError("Test error")
    mock_lock.acquire.assert_called_once()
    mock_lock.release.assert_called_once()


def test_timer_heap_orders_by_deadline_then_submission():
    heap = _TimerHeap()
    late = _cb(QueueKind.TIMER, "late")
    early_1 = _cb(QueueKind.TIMER, "early 1")
    early_2 = _cb(QueueKind.TIMER, "early 2")
    heap.push(5.0, late)
    heap.push(1.0, early_1)
    heap.push(1.0, early_2)

    assert len(heap) == 3
    assert heap.peek() == (1.0, early_1)
    assert [heap.pop()[1] for _ in range(3)] == [early_1, early_2, late]
    assert heap.pop() is None
    assert heap.peek() is None


def test_timer_heap_clear_and_iter():
    heap = _TimerHeap()
    cb = _cb(QueueKind.TIMER)
    heap.push(1.0, cb)
    assert list(heap) == [cb]
    heap.clear()
    assert len(heap) == 0
