"""Source driver serving migrations from named in-memory assets."""

from __future__ import annotations

import errno
import io
from dataclasses import dataclass, field
from typing import Callable

from migratekit.source.driver import Driver, register
from migratekit.source.migration import Migration, Migrations, parse

__all__ = ["AssetFunc", "AssetSource", "Bindata", "resource", "with_instance"]

AssetFunc = Callable[[str], bytes]


@dataclass
class AssetSource:
    """Asset names together with the function that returns an asset's bytes."""

    names: list[str] = field(default_factory=list)
    asset_func: AssetFunc | None = None


def resource(names: list[str], asset_func: AssetFunc) -> AssetSource:
    """Bundle asset names with the function that loads them."""
    return AssetSource(names=list(names), asset_func=asset_func)


def _not_exist(op: str, path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, op, path)


class Bindata(Driver):
    """Reads migration bodies through an ``AssetSource``."""

    def __init__(
        self,
        asset_source: AssetSource | None = None,
        migrations: Migrations | None = None,
    ) -> None:
        self.path = "<bindata>"
        self.asset_source = asset_source
        self.migrations = migrations if migrations is not None else Migrations()

    def open(self, url: str) -> Driver:
        raise ValueError("bindata source cannot be opened from a URL; use with_instance")

    def close(self) -> None:
        return None

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise _not_exist("first", self.path)
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise _not_exist(f"prev for version {version}", self.path)
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise _not_exist(f"next for version {version}", self.path)
        return found

    def read_up(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.up(version)
        if migration is None:
            raise _not_exist(f"read version {version}", self.path)
        return self._load(migration), migration.identifier

    def read_down(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.down(version)
        if migration is None:
            raise _not_exist(f"read version {version}", self.path)
        return self._load(migration), migration.identifier

    def _load(self, migration: Migration) -> io.BytesIO:
        if self.asset_source is None or self.asset_source.asset_func is None:
            raise ValueError("no asset source")
        return io.BytesIO(self.asset_source.asset_func(migration.raw))


def with_instance(instance: AssetSource) -> Bindata:
    """Return a driver indexing the migrations named in ``instance``."""
    if not isinstance(instance, AssetSource):
        raise TypeError("expects AssetSource")

    driver = Bindata(asset_source=instance)
    for name in instance.names:
        try:
            migration = parse(name)
        except ValueError:
            continue
        if not driver.migrations.append(migration):
            raise ValueError(f"unable to parse file {name}")
    return driver


register("bindata", Bindata())