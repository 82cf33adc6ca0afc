"""A single migration as it is scheduled, buffered and run against a database."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import BinaryIO

__all__ = ["DEFAULT_BUFFER_SIZE", "Migration"]

DEFAULT_BUFFER_SIZE = 100_000
"""Bytes read ahead from the source for every pre-read migration."""


class Migration:
    """A migration read from a source and applied to a database.

    ``body`` may be ``None``, which makes this an empty migration: the version
    is still applied, but nothing is executed. ``target_version`` is the
    version the database is at after this migration; ``-1`` means no version.
    """

    def __init__(
        self,
        body: BinaryIO | None,
        identifier: str,
        version: int,
        target_version: int,
    ) -> None:
        now = datetime.now()
        self.identifier = identifier
        self.version = version
        self.target_version = target_version
        self.body = body
        self.buffer_size = DEFAULT_BUFFER_SIZE if body is not None else 0
        self.scheduled = now
        self.started_buffering: datetime | None = None
        self.finished_buffering: datetime | None = None
        self.finished_reading: datetime | None = None
        self.bytes_read = 0

        self._lock = threading.Lock()
        self._done = False
        self._data = b""
        self._error: BaseException | None = None

        if body is None:
            if not identifier:
                self.identifier = "<empty>"
            self.started_buffering = now
            self.finished_buffering = now
            self.finished_reading = now
            self._done = True

    def __str__(self) -> str:
        return f"{self.identifier} [{self.version}=>{self.target_version}]"

    def __repr__(self) -> str:
        return f"Migration({self})"

    def log_string(self) -> str:
        """Describe the migration for humans, e.g. ``3/u create_users``."""
        direction = "d" if self.target_version < self.version else "u"
        return f"{self.version}/{direction} {self.identifier}"

    def buffer(self) -> None:
        """Read the whole body into memory and close it.

        Safe to call from several threads; the body is read only once. Any
        error raised while reading is raised again on every later call.
        """
        with self._lock:
            if self._done:
                if self._error is not None:
                    raise self._error
                return
            try:
                self._read_all()
            except BaseException as exc:
                self._error = exc
                raise
            finally:
                self._done = True

    def read_body(self) -> bytes:
        """Return the full body, buffering it first if that has not happened."""
        if self.body is None:
            return b""
        self.buffer()
        return self._data

    def _read_all(self) -> None:
        body = self.body
        if body is None:
            return
        self.started_buffering = datetime.now()
        head = body.read(self.buffer_size) if self.buffer_size > 0 else b""
        self.finished_buffering = datetime.now()
        rest = body.read()
        data = (head or b"") + (rest or b"")
        self.finished_reading = datetime.now()
        self._data = data
        self.bytes_read = len(data)
        body.close()