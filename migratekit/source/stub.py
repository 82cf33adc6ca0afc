"""An in-memory source driver whose bodies are the migration identifiers."""

from __future__ import annotations

import errno
import io
from dataclasses import dataclass
from typing import Any

from migratekit.source.driver import Driver, register
from migratekit.source.migration import Migrations

__all__ = ["Config", "Stub", "with_instance"]


@dataclass
class Config:
    """Configuration of the stub driver; it has no options."""


def _not_exist(op: str, path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, op, path)


class Stub(Driver):
    """Source driver serving migrations held in a ``Migrations`` index."""

    def __init__(
        self,
        url: str = "",
        instance: Any = None,
        migrations: Migrations | None = None,
        config: Config | None = None,
    ) -> None:
        self.url = url
        self.instance = instance
        self.migrations = migrations if migrations is not None else Migrations()
        self.config = config

    def open(self, url: str) -> Stub:
        return Stub(url=url, config=Config())

    def close(self) -> None:
        return None

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise _not_exist("first", self.url)
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise _not_exist(f"prev for version {version}", self.url)
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise _not_exist(f"next for version {version}", self.url)
        return found

    def read_up(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.up(version)
        if migration is None:
            raise _not_exist(f"read up version {version}", self.url)
        return io.BytesIO(migration.identifier.encode()), f"{version}.up.stub"

    def read_down(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.down(version)
        if migration is None:
            raise _not_exist(f"read down version {version}", self.url)
        return io.BytesIO(migration.identifier.encode()), f"{version}.down.stub"


def with_instance(instance: Any, config: Config | None) -> Stub:
    """Return a stub driver wrapping an existing instance."""
    return Stub(instance=instance, config=config)


register("stub", Stub())