# tests/unit/runtime/test_channel.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
from concurrent.futures import TimeoutError as FutureTimeoutError

import pytest

from phaseloop.core.errors import ChannelClosedError, WorkerError
from phaseloop.runtime.channel import OneShotChannel


def test_send_then_receive():
    channel = OneShotChannel("result")
    assert channel.sent is False
    channel.send("The final count is 0")
    assert channel.sent is True
    assert channel.receive(timeout=0) == "The final count is 0"
    assert channel.future.done()


def test_second_send_raises():
    channel = OneShotChannel("result")
    channel.send(1)
    with pytest.raises(ChannelClosedError) as exc_info:
        channel.send(2)
    assert exc_info.value.details == {"channel": "result"}
    assert channel.receive() == 1


def test_fail_delivers_error():
    channel = OneShotChannel()
    channel.fail(WorkerError("no task"))
    with pytest.raises(WorkerError):
        channel.receive(timeout=0)
    with pytest.raises(ChannelClosedError):
        channel.send("late")


def test_receive_times_out():
    with pytest.raises(FutureTimeoutError):
        OneShotChannel().receive(timeout=0.01)


def test_receive_across_threads():
    channel = OneShotChannel()
    threading.Timer(0.02, channel.send, args=("hello",)).start()
    assert channel.receive(timeout=2) == "hello"


def test_only_one_of_racing_senders_wins():
    channel = OneShotChannel()
    errors = []

    def send(value):
        try:
            channel.send(value)
        except ChannelClosedError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=send, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(errors) == 7
    assert channel.receive() in range(8)
