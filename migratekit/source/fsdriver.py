"""Source drivers that read migration files from a directory tree.

Any object with the ``pathlib.Path`` reading interface can serve as the
tree: a real directory, a ``zipfile.Path`` or package resources.
Drivers built on these trees cannot be opened from a URL.
"""

from __future__ import annotations

import errno
import posixpath
from typing import Any, BinaryIO, Iterable, Protocol

from migratekit.source.driver import Driver
from migratekit.source.migration import (
    DuplicateMigrationError,
    Migration,
    Migrations,
    parse,
)

__all__ = ["PartialDriver", "FSDriver", "new"]


class _Tree(Protocol):
    @property
    def name(self) -> str: ...

    def joinpath(self, *parts: str) -> _Tree: ...

    def is_dir(self) -> bool: ...

    def is_file(self) -> bool: ...

    def iterdir(self) -> Iterable[_Tree]: ...

    def open(self, mode: str = "r") -> Any: ...


def _not_exist(op: str, path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, op, path)


def _resolve(root: _Tree, path: str) -> _Tree:
    parts = [part for part in path.split("/") if part not in ("", ".")]
    return root.joinpath(*parts) if parts else root


class PartialDriver(Driver):
    """Every source driver operation except ``open``, over a directory tree.

    Call ``init`` before use; subclasses add ``open``.
    """

    def __init__(self) -> None:
        self._root: _Tree | None = None
        self._dir: _Tree | None = None
        self._path = ""
        self._migrations = Migrations()

    def init(self, root: _Tree, path: str) -> None:
        """Index the migration files found at ``path`` inside ``root``."""
        directory = _resolve(root, path)
        if not directory.is_dir():
            if directory.is_file():
                raise NotADirectoryError(errno.ENOTDIR, "not a directory", path)
            raise FileNotFoundError(errno.ENOENT, "open", path)

        migrations = Migrations()
        for entry in sorted(directory.iterdir(), key=lambda item: item.name):
            if entry.is_dir():
                continue
            try:
                migration = parse(entry.name)
            except ValueError:
                continue
            if not migrations.append(migration):
                raise DuplicateMigrationError(migration, entry.name)

        self._root = root
        self._dir = directory
        self._path = path
        self._migrations = migrations

    def close(self) -> None:
        """Close the underlying tree if it can be closed."""
        closer = getattr(self._root, "close", None)
        if callable(closer):
            closer()

    def first(self) -> int:
        version = self._migrations.first()
        if version is None:
            raise _not_exist("first", self._path)
        return version

    def prev(self, version: int) -> int:
        found = self._migrations.prev(version)
        if found is None:
            raise _not_exist(f"prev for version {version}", self._path)
        return found

    def next(self, version: int) -> int:
        found = self._migrations.next(version)
        if found is None:
            raise _not_exist(f"next for version {version}", self._path)
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        migration = self._migrations.up(version)
        if migration is None:
            raise _not_exist(f"read up for version {version}", self._path)
        return self._open(migration), migration.identifier

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        migration = self._migrations.down(version)
        if migration is None:
            raise _not_exist(f"read down for version {version}", self._path)
        return self._open(migration), migration.identifier

    def _open(self, migration: Migration) -> BinaryIO:
        if self._dir is None:
            raise RuntimeError("driver has not been initialised")
        full_path = posixpath.join(self._path, migration.raw)
        try:
            return self._dir.joinpath(migration.raw).open("rb")
        except OSError:
            raise
        except Exception as exc:
            # Some trees report a missing member without naming it.
            raise OSError(f"open {full_path}: {exc}") from exc


class FSDriver(PartialDriver):
    """A pass-through driver over a tree given directly by the caller."""

    def open(self, url: str) -> Driver:
        raise RuntimeError("Open() cannot be called on the passthrough driver")


def new(root: _Tree, path: str) -> FSDriver:
    """Return a driver reading migrations at ``path`` inside ``root``."""
    driver = FSDriver()
    driver.init(root, path)
    return driver