# tests/unit/runtime/test_fs.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from phaseloop.core.tasks import Phase
from phaseloop.runtime.fs import ReadableStream, read_file, write_file_sync


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "dummy.txt"
    path.write_text("Hello from the event loop!")
    return path


def test_write_file_sync_overwrites(tmp_path):
    path = tmp_path / "dummy.txt"
    write_file_sync(path, "first, longer content")
    write_file_sync(path, "second")
    assert path.read_text() == "second"


def test_write_file_sync_propagates_errors(tmp_path):
    with pytest.raises(OSError):
        write_file_sync(tmp_path / "missing" / "dummy.txt", "x")


def test_read_file_completes_in_poll_phase(scheduler, text_file):
    results = []

    def on_read(error, data):
        results.append((error, data, scheduler.phase))

    scheduler.run(lambda: read_file(scheduler, text_file, on_read))
    assert results == [(None, "Hello from the event loop!", Phase.POLL)]
    assert scheduler.pending_io == 0


def test_read_file_bytes(scheduler, text_file):
    results = []
    scheduler.run(lambda: read_file(scheduler, text_file, lambda e, d: results.append(d), encoding=None))
    assert results == [b"Hello from the event loop!"]


def test_read_file_missing_delivers_error(scheduler, tmp_path):
    results = []
    scheduler.run(lambda: read_file(scheduler, tmp_path / "nope.txt", lambda e, d: results.append((e, d))))
    error, data = results[0]
    assert isinstance(error, FileNotFoundError)
    assert data is None


def test_read_file_threaded(realtime_scheduler, text_file):
    results = []
    realtime_scheduler.run(lambda: read_file(realtime_scheduler, text_file, lambda e, d: results.append(d)))
    assert results == ["Hello from the event loop!"]


def test_read_file_unknown_encoding_delivers_error_threaded(realtime_scheduler, text_file):
    results = []
    realtime_scheduler.run(
        lambda: read_file(realtime_scheduler, text_file, lambda e, d: results.append((e, d)), encoding="no-such-codec")
    )
    error, data = results[0]
    assert isinstance(error, LookupError)
    assert data is None
    assert realtime_scheduler.pending_io == 0


def test_read_file_unknown_encoding_delivers_error_inline(scheduler, text_file):
    results = []
    scheduler.run(lambda: read_file(scheduler, text_file, lambda e, d: results.append((e, d)), encoding="no-such-codec"))
    assert len(results) == 1
    assert isinstance(results[0][0], LookupError)
    assert scheduler.pending_io == 0


def test_stream_destroy_schedules_close_once(scheduler, text_file):
    seen = []
    handles = {}

    def main():
        stream = ReadableStream(scheduler, text_file)
        handles["stream"] = stream
        stream.on("close", lambda: seen.append(scheduler.phase))
        stream.destroy()
        stream.destroy()
        seen.append("mainline end")

    scheduler.run(main)
    assert seen == ["mainline end", Phase.CLOSE_CALLBACKS]
    stream = handles["stream"]
    assert stream.destroyed is True
    assert stream.closed is True
    assert scheduler.refs == 0


def test_stream_open_error_propagates(scheduler, tmp_path):
    with pytest.raises(FileNotFoundError):
        ReadableStream(scheduler, tmp_path / "nope.txt")
    assert scheduler.refs == 0


def test_stream_resume_emits_data_end_close(scheduler, text_file):
    events = []

    def main():
        stream = ReadableStream(scheduler, text_file)
        stream.on("data", lambda chunk: events.append(("data", chunk)))
        stream.on("end", lambda: events.append(("end",)))
        stream.on("close", lambda: events.append(("close",)))
        stream.resume()

    scheduler.run(main)
    assert events == [("data", b"Hello from the event loop!"), ("end",), ("close",)]


def test_stream_destroy_with_error(scheduler, text_file):
    events = []

    def main():
        stream = ReadableStream(scheduler, text_file)
        stream.on("error", lambda error: events.append(("error", str(error))))
        stream.on("close", lambda: events.append(("close",)))
        stream.destroy(OSError("read failed"))

    scheduler.run(main)
    assert events == [("error", "read failed"), ("close",)]


def test_paused_stream_does_not_keep_loop_alive(scheduler, text_file):
    handles = {}

    def main():
        handles["stream"] = ReadableStream(scheduler, text_file)

    assert scheduler.run(main) == 0
    assert scheduler.refs == 0
    stream = handles["stream"]
    assert stream.destroyed is False
    stream.destroy()
    scheduler.run()
    assert stream.closed is True


def test_resumed_stream_holds_a_ref_until_destroyed(scheduler, text_file):
    refs = []

    def main():
        stream = ReadableStream(scheduler, text_file)
        stream.on("data", lambda chunk: refs.append(scheduler.refs))
        stream.resume()
        refs.append(scheduler.refs)

    scheduler.run(main)
    assert refs == [1, 1]
    assert scheduler.refs == 0
