"""Source driver reading migrations from an S3 bucket (``s3://bucket/prefix``).

The client passed in must offer ``list_objects(Bucket=, Prefix=, Delimiter=)``
returning ``{"Contents": [{"Key": ...}]}`` and ``get_object(Bucket=, Key=)``
returning ``{"Body": stream}``.
"""

from __future__ import annotations

import errno
import posixpath
from dataclasses import dataclass
from typing import Any, BinaryIO

from migratekit.source.driver import Driver, register
from migratekit.source.migration import Migration, Migrations, parse

__all__ = ["Config", "S3Driver", "parse_uri", "with_instance"]


@dataclass
class Config:
    """Bucket and key prefix where the migrations live."""

    bucket: str = ""
    prefix: str = ""


def parse_uri(uri: str) -> Config:
    """Return the bucket and prefix named by an ``s3://`` URL.

    A non-empty prefix always ends in a single ``/``.
    """
    from urllib.parse import urlsplit

    parts = urlsplit(uri)
    prefix = parts.path.strip("/")
    if prefix:
        prefix += "/"
    bucket = parts.netloc.rpartition("@")[2]
    return Config(bucket=bucket, prefix=prefix)


def _not_exist() -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, "file does not exist")


class S3Driver(Driver):
    """Serves migration objects listed directly under a bucket prefix."""

    def __init__(self, client: Any = None, config: Config | None = None) -> None:
        self.client = client
        self.config = config if config is not None else Config()
        self.migrations = Migrations()

    def open(self, url: str) -> S3Driver:
        if self.client is None:
            raise ValueError("s3 source driver: no client configured; use with_instance")
        return with_instance(self.client, parse_uri(url))

    def close(self) -> None:
        return None

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise _not_exist()
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise _not_exist()
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise _not_exist()
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        migration = self.migrations.up(version)
        if migration is None:
            raise _not_exist()
        return self._open(migration)

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        migration = self.migrations.down(version)
        if migration is None:
            raise _not_exist()
        return self._open(migration)

    def _load_migrations(self) -> None:
        output = self.client.list_objects(
            Bucket=self.config.bucket,
            Prefix=self.config.prefix,
            Delimiter="/",
        )
        for obj in output.get("Contents") or []:
            key = obj["Key"]
            try:
                migration = parse(key.rpartition("/")[2])
            except ValueError:
                continue
            if not self.migrations.append(migration):
                raise ValueError(f"unable to parse file {key}")

    def _open(self, migration: Migration) -> tuple[BinaryIO, str]:
        key = posixpath.join(self.config.prefix, migration.raw)
        response = self.client.get_object(Bucket=self.config.bucket, Key=key)
        return response["Body"], migration.identifier


def with_instance(client: Any, config: Config) -> S3Driver:
    """Return a driver listing the migrations of ``config`` through ``client``."""
    driver = S3Driver(client=client, config=config)
    driver._load_migrations()
    return driver


register("s3", S3Driver())