"""Migration file descriptions, an ordered index of them, and file name parsing."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Direction",
    "Migration",
    "Migrations",
    "ParseError",
    "DuplicateMigrationError",
    "REGEX",
    "parse",
]

_MAX_VERSION = 2**64 - 1


class Direction(str, Enum):
    """Direction of a migration file."""

    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class Migration:
    """A migration file known to a source."""

    version: int
    identifier: str = ""
    direction: Direction = Direction.UP
    raw: str = ""


class ParseError(ValueError):
    """Raised when a file name does not match the migration pattern."""

    def __init__(self, message: str = "no match") -> None:
        super().__init__(message)


class DuplicateMigrationError(Exception):
    """Raised when two files describe the same version and direction."""

    def __init__(self, migration: Migration, name: str) -> None:
        self.migration = migration
        self.name = name
        super().__init__(f"duplicate migration file: {name}")


class Migrations:
    """Migrations of a source, indexed by version and direction in ascending order."""

    def __init__(self) -> None:
        self._index: list[int] = []
        self._migrations: dict[int, dict[Direction, Migration]] = {}

    def append(self, migration: Migration | None) -> bool:
        """Add a migration; return False if it is None or a duplicate."""
        if migration is None:
            return False
        by_direction = self._migrations.get(migration.version)
        if by_direction is None:
            by_direction = self._migrations[migration.version] = {}
            bisect.insort(self._index, migration.version)
        if migration.direction in by_direction:
            return False
        by_direction[migration.direction] = migration
        return True

    def first(self) -> int | None:
        """Return the lowest version, or None when empty."""
        return self._index[0] if self._index else None

    def prev(self, version: int) -> int | None:
        """Return the version before ``version``, or None."""
        pos = self._find_pos(version)
        return self._index[pos - 1] if pos >= 1 else None

    def next(self, version: int) -> int | None:
        """Return the version after ``version``, or None."""
        pos = self._find_pos(version)
        if pos >= 0 and pos + 1 < len(self._index):
            return self._index[pos + 1]
        return None

    def up(self, version: int) -> Migration | None:
        """Return the up migration of ``version``, if any."""
        return self._migrations.get(version, {}).get(Direction.UP)

    def down(self, version: int) -> Migration | None:
        """Return the down migration of ``version``, if any."""
        return self._migrations.get(version, {}).get(Direction.DOWN)

    def _find_pos(self, version: int) -> int:
        pos = bisect.bisect_left(self._index, version)
        if pos < len(self._index) and self._index[pos] == version:
            return pos
        return -1


REGEX = re.compile(
    rf"([0-9]+)_(.*)\.({Direction.DOWN.value}|{Direction.UP.value})\.(.*)"
)


def parse(raw: str) -> Migration:
    """Parse a name such as ``123_name.up.sql`` into a Migration."""
    match = REGEX.fullmatch(raw)
    if match is None:
        raise ParseError()
    version = int(match.group(1))
    if version > _MAX_VERSION:
        raise ValueError(f"version out of range: {match.group(1)}")
    return Migration(
        version=version,
        identifier=match.group(2),
        direction=Direction(match.group(3)),
        raw=raw,
    )