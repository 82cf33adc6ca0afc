import io
import threading

import pytest

from migratekit.migration import DEFAULT_BUFFER_SIZE, Migration


class _FailingBody(io.BytesIO):
    def read(self, size=-1):
        raise OSError("boom")


def test_log_string_up():
    body = io.BytesIO(b"dumy migration that creates users table")
    migr = Migration(body, "create_users_table", 1486686016, 1486689359)
    assert migr.log_string() == "1486686016/u create_users_table"


def test_log_string_nil_migration():
    migr = Migration(None, "", 1486686016, 1486689359)
    assert migr.log_string() == "1486686016/u <empty>"


def test_log_string_nil_version():
    body = io.BytesIO(b"dumy migration that deletes users table")
    migr = Migration(body, "drop_users_table", 1486686016, -1)
    assert migr.log_string() == "1486686016/d drop_users_table"


def test_same_version_counts_as_up():
    migr = Migration(None, "x", 5, 5)
    assert migr.log_string() == "5/u x"


def test_str():
    migr = Migration(io.BytesIO(b""), "name", 3, 1)
    assert str(migr) == "name [3=>1]"


def test_nil_migration_has_equal_timestamps_and_empty_body():
    migr = Migration(None, "", 1, 2)
    assert migr.identifier == "<empty>"
    assert migr.scheduled == migr.started_buffering == migr.finished_reading
    assert migr.read_body() == b""
    assert migr.buffer_size == 0


def test_nil_migration_keeps_given_identifier():
    migr = Migration(None, "kept", 1, 2)
    assert migr.identifier == "kept"


def test_empty_identifier_with_body_stays_empty():
    migr = Migration(io.BytesIO(b"x"), "", 1, 2)
    assert migr.identifier == ""
    assert migr.buffer_size == DEFAULT_BUFFER_SIZE


def test_buffer_reads_and_closes_body():
    body = io.BytesIO(b"CREATE TABLE t")
    migr = Migration(body, "t", 1, 1)
    migr.buffer()
    assert migr.bytes_read == 14
    assert body.closed
    assert migr.read_body() == b"CREATE TABLE t"
    assert migr.started_buffering <= migr.finished_buffering <= migr.finished_reading


def test_buffer_is_idempotent():
    migr = Migration(io.BytesIO(b"abc"), "a", 1, 1)
    migr.buffer()
    migr.buffer()
    assert migr.read_body() == b"abc"
    assert migr.bytes_read == 3


def test_read_body_buffers_when_needed():
    migr = Migration(io.BytesIO(b"hello"), "h", 2, 2)
    assert migr.read_body() == b"hello"
    assert migr.bytes_read == 5


def test_body_larger_than_buffer_size():
    payload = b"x" * 250
    migr = Migration(io.BytesIO(payload), "big", 1, 1)
    migr.buffer_size = 100
    assert migr.read_body() == payload
    assert migr.bytes_read == 250


def test_buffer_in_background_thread():
    migr = Migration(io.BytesIO(b"threaded"), "t", 1, 1)
    worker = threading.Thread(target=migr.buffer)
    worker.start()
    data = migr.read_body()
    worker.join()
    assert data == b"threaded"


def test_buffer_error_propagates():
    migr = Migration(_FailingBody(b"ignored"), "bad", 1, 1)
    with pytest.raises(OSError, match="boom"):
        migr.buffer()
    with pytest.raises(OSError, match="boom"):
        migr.read_body()
    assert migr.bytes_read == 0