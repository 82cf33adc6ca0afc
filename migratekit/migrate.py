"""Reads migrations from a source and applies them to a database.

Source and database drivers are kept simple; every decision about which
migrations to run, in which order and with which target version, is made here.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Protocol
from urllib.parse import urlsplit

from migratekit.migration import Migration
from migratekit.source.driver import Driver as SourceDriver
from migratekit.source.driver import open_driver
from migratekit.util import MultiError, suint

__all__ = [
    "DEFAULT_PREFETCH_MIGRATIONS",
    "DEFAULT_LOCK_TIMEOUT",
    "NIL_VERSION",
    "MigrateError",
    "NoChangeError",
    "NilVersionError",
    "InvalidVersionError",
    "LockedError",
    "LockTimeoutError",
    "ShortLimitError",
    "DirtyError",
    "DatabaseDriver",
    "Logger",
    "Migrate",
]

DEFAULT_PREFETCH_MIGRATIONS = 10
"""Number of migrations announced as pre-read from the source."""

DEFAULT_LOCK_TIMEOUT = 15.0
"""Seconds a database driver has to acquire its lock."""

NIL_VERSION = -1
"""The version a database reports when no migration has been applied."""


class MigrateError(Exception):
    """Base class of the errors raised while migrating."""


class NoChangeError(MigrateError):
    """Nothing had to be done."""

    def __init__(self) -> None:
        super().__init__("no change")


class NilVersionError(MigrateError):
    """No migration has been applied yet."""

    def __init__(self) -> None:
        super().__init__("no migration")


class InvalidVersionError(MigrateError, ValueError):
    """A version below -1 was given."""

    def __init__(self) -> None:
        super().__init__("version must be >= -1")


class LockedError(MigrateError):
    """The database is already locked by this instance."""

    def __init__(self) -> None:
        super().__init__("database locked")


class LockTimeoutError(MigrateError, TimeoutError):
    """The database lock could not be acquired in time."""

    def __init__(self) -> None:
        super().__init__("timeout: can't acquire database lock")


class ShortLimitError(MigrateError):
    """The source held fewer migrations than the requested number of steps."""

    def __init__(self, short: int) -> None:
        self.short = short
        super().__init__(f"limit {short} short")


class DirtyError(MigrateError):
    """The database was left in a dirty state by a failed migration."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"Dirty database version {version}. Fix and force version.")


class DatabaseDriver(ABC):
    """A database migrations are applied to."""

    @abstractmethod
    def lock(self) -> None:
        """Acquire the database lock."""

    @abstractmethod
    def unlock(self) -> None:
        """Release the database lock."""

    @abstractmethod
    def run(self, body: bytes) -> None:
        """Execute a migration body."""

    @abstractmethod
    def set_version(self, version: int, dirty: bool) -> None:
        """Record the current version and whether it is dirty."""

    @abstractmethod
    def version(self) -> tuple[int, bool]:
        """Return the current version (``NIL_VERSION`` if none) and the dirty flag."""

    @abstractmethod
    def drop(self) -> None:
        """Delete everything in the database."""

    @abstractmethod
    def close(self) -> None:
        """Close the database connection."""


class Logger(Protocol):
    """Receives progress messages."""

    verbose: bool

    def log(self, message: str) -> None:
        """Record one message."""


class Migrate:
    """Moves a database between the versions offered by a source."""

    def __init__(
        self,
        source_name: str,
        source_driver: SourceDriver,
        database_name: str,
        database_driver: DatabaseDriver,
    ) -> None:
        self.source_name = source_name
        self.source_driver = source_driver
        self.database_name = database_name
        self.database_driver = database_driver
        self.logger: Logger | None = None
        self.prefetch_migrations = DEFAULT_PREFETCH_MIGRATIONS
        self.lock_timeout = DEFAULT_LOCK_TIMEOUT
        self._stop_event = threading.Event()
        self._is_locked_mu = threading.Lock()
        self._is_locked = False

    @classmethod
    def with_database_instance(
        cls, source_url: str, database_name: str, database_driver: DatabaseDriver
    ) -> Migrate:
        """Open the source named by ``source_url`` and pair it with a database."""
        scheme = urlsplit(source_url).scheme
        if not scheme:
            raise ValueError(f"failed to parse scheme from source URL: {source_url!r}")
        source_driver = open_driver(source_url)
        return cls(scheme, source_driver, database_name, database_driver)

    def __enter__(self) -> Migrate:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the source and the database; raise what either close raised."""
        self._log_verbose("Closing source and database")
        errors: list[Exception] = []
        for closer in (self.source_driver.close, self.database_driver.close):
            try:
                closer()
            except Exception as exc:
                errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise MultiError(*errors)

    def migrate(self, version: int) -> None:
        """Migrate up or down until ``version`` is the current version."""
        if version < 0:
            raise InvalidVersionError()
        self._apply(lambda current: self._read(current, version))

    def steps(self, n: int) -> None:
        """Apply ``n`` up migrations, or ``-n`` down migrations if ``n`` is negative."""
        if n == 0:
            raise NoChangeError()
        if n > 0:
            self._apply(lambda current: self._read_up(current, n))
        else:
            self._apply(lambda current: self._read_down(current, -n))

    def up(self) -> None:
        """Apply every remaining up migration."""
        self._apply(lambda current: self._read_up(current, -1))

    def down(self) -> None:
        """Apply every down migration."""
        self._apply(lambda current: self._read_down(current, -1))

    def drop(self) -> None:
        """Delete everything in the database."""
        with self._locked():
            self.database_driver.drop()

    def run(self, *args: Migration) -> None:
        """Run the given migrations without consulting the source."""
        if not args:
            raise NoChangeError()
        self._apply(lambda current: self._schedule(args))

    def force(self, version: int) -> None:
        """Set the version without running anything and clear the dirty flag."""
        if version < NIL_VERSION:
            raise InvalidVersionError()
        with self._locked():
            self.database_driver.set_version(version, False)

    def version(self) -> tuple[int, bool]:
        """Return the current version and dirty flag.

        Raises ``NilVersionError`` if no migration has been applied.
        """
        version, dirty = self.database_driver.version()
        if version == NIL_VERSION:
            raise NilVersionError()
        return suint(version), dirty

    def request_stop(self) -> None:
        """Stop at the next safe point between migrations."""
        self._stop_event.set()

    def _stopped(self) -> bool:
        return self._stop_event.is_set()

    def _apply(self, plan) -> None:
        with self._locked():
            current, dirty = self.database_driver.version()
            if dirty:
                raise DirtyError(current)
            self._run_migrations(plan(current))

    def _schedule(self, migrations: Iterable[Migration]) -> Iterator[Migration]:
        for migr in migrations:
            self._log_scheduled(migr)
            yield migr

    def _read(self, from_: int, to: int) -> Iterator[Migration]:
        """Yield the migrations leading from version ``from_`` to ``to``."""
        if from_ >= 0:
            self._version_exists(suint(from_))
        if to >= 0:
            self._version_exists(suint(to))
        if from_ == to:
            raise NoChangeError()

        if from_ < to:
            if from_ == NIL_VERSION:
                first = self.source_driver.first()
                yield self._new_migration(first, first)
                from_ = first
            while from_ < to:
                if self._stopped():
                    return
                following = self.source_driver.next(suint(from_))
                yield self._new_migration(following, following)
                from_ = following
            return

        while from_ > to and from_ >= 0:
            if self._stopped():
                return
            try:
                previous: int | None = self.source_driver.prev(suint(from_))
            except FileNotFoundError:
                if to != NIL_VERSION:
                    raise
                previous = None
            if previous is None:
                yield self._new_migration(suint(from_), NIL_VERSION)
                return
            yield self._new_migration(suint(from_), previous)
            from_ = previous

    def _read_up(self, from_: int, limit: int) -> Iterator[Migration]:
        """Yield up to ``limit`` up migrations after ``from_``; -1 means no limit."""
        if from_ >= 0:
            self._version_exists(suint(from_))
        if limit == 0:
            raise NoChangeError()

        count = 0
        while limit == -1 or count < limit:
            if self._stopped():
                return
            if from_ == NIL_VERSION:
                first = self.source_driver.first()
                yield self._new_migration(first, first)
                from_ = first
                count += 1
                continue
            try:
                following = self.source_driver.next(suint(from_))
            except FileNotFoundError:
                if limit == -1 and count == 0:
                    raise NoChangeError() from None
                if limit == -1:
                    return
                if count == 0:
                    raise
                raise ShortLimitError(limit - count) from None
            yield self._new_migration(following, following)
            from_ = following
            count += 1

    def _read_down(self, from_: int, limit: int) -> Iterator[Migration]:
        """Yield up to ``limit`` down migrations from ``from_``; -1 means no limit."""
        if from_ >= 0:
            self._version_exists(suint(from_))
        if limit == 0:
            raise NoChangeError()
        if from_ == NIL_VERSION and limit == -1:
            raise NoChangeError()
        if from_ == NIL_VERSION and limit > 0:
            raise FileNotFoundError("no version to migrate down from")

        count = 0
        while limit == -1 or count < limit:
            if self._stopped():
                return
            try:
                previous: int | None = self.source_driver.prev(suint(from_))
            except FileNotFoundError:
                previous = None
            if previous is None:
                first = self.source_driver.first()
                yield self._new_migration(first, NIL_VERSION)
                count += 1
                if count < limit:
                    raise ShortLimitError(limit - count)
                return
            yield self._new_migration(suint(from_), previous)
            from_ = previous
            count += 1

    def _run_migrations(self, migrations: Iterable[Migration]) -> None:
        for migr in migrations:
            if self._stopped():
                return

            self.database_driver.set_version(migr.target_version, True)
            if migr.body is not None:
                self._log_verbose(f"Read and execute {migr.log_string()}")
                self.database_driver.run(migr.read_body())
            self.database_driver.set_version(migr.target_version, False)

            end_time = datetime.now()
            if self.logger is not None:
                started = migr.started_buffering or migr.scheduled
                finished = migr.finished_reading or end_time
                read_time = finished - started
                run_time = end_time - finished
                if self.logger.verbose:
                    self.logger.log(
                        f"Finished {migr.log_string()} (read {read_time}, ran {run_time})"
                    )
                else:
                    self.logger.log(f"{migr.log_string()} ({read_time + run_time})")

    def _version_exists(self, version: int) -> None:
        """Raise ``FileNotFoundError`` unless an up or down migration exists."""
        last_error: FileNotFoundError | None = None
        for reader in (self.source_driver.read_up, self.source_driver.read_down):
            try:
                body, _ = reader(version)
            except FileExistsError:
                return
            except FileNotFoundError as exc:
                last_error = exc
                continue
            body.close()
            return

        error = FileNotFoundError(f"no migration found for version {version}")
        self._log_error(error)
        raise error from last_error

    def _new_migration(self, version: int, target_version: int) -> Migration:
        reader = (
            self.source_driver.read_up
            if target_version >= version
            else self.source_driver.read_down
        )
        try:
            body, identifier = reader(version)
        except FileNotFoundError:
            migr = Migration(None, "", version, target_version)
        else:
            migr = Migration(body, identifier, version, target_version)
        self._log_scheduled(migr)
        return migr

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._lock()
        try:
            yield
        except BaseException as exc:
            try:
                self._unlock()
            except Exception as unlock_exc:
                raise MultiError(exc, unlock_exc) from exc
            raise
        self._unlock()

    def _lock(self) -> None:
        with self._is_locked_mu:
            if self._is_locked:
                raise LockedError()

            done = threading.Event()
            outcome: list[BaseException] = []

            def acquire() -> None:
                try:
                    self.database_driver.lock()
                except BaseException as exc:
                    outcome.append(exc)
                finally:
                    done.set()

            threading.Thread(target=acquire, daemon=True).start()
            if not done.wait(self.lock_timeout):
                raise LockTimeoutError()
            if outcome:
                raise outcome[0]
            self._is_locked = True

    def _unlock(self) -> None:
        with self._is_locked_mu:
            self.database_driver.unlock()
            self._is_locked = False

    def _log_scheduled(self, migr: Migration) -> None:
        if self.prefetch_migrations > 0 and migr.body is not None:
            self._log_verbose(f"Start buffering {migr.log_string()}")
        else:
            self._log_verbose(f"Scheduled {migr.log_string()}")

    def _log_verbose(self, message: str) -> None:
        if self.logger is not None and self.logger.verbose:
            self.logger.log(message)

    def _log_error(self, error: BaseException) -> None:
        if self.logger is not None:
            self.logger.log(f"error: {error}")