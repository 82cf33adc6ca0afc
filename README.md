# migratekit

migratekit reads versioned migrations from a source and applies them to a
database. It records the current version together with a "dirty" flag, so
that a migration that failed halfway is never silently skipped.

All decisions about which migrations to run, in which order and with which
target version are made in `migratekit.migrate.Migrate`. Sources only list
versions and hand out migration bodies; a database driver only locks, runs
bodies and records the version.

## Installation

```
pip install migratekit
```

The package has no runtime dependencies.

## Migration files

File-based sources recognise names of the form

```
<version>_<name>.up.<ext>
<version>_<name>.down.<ext>
```

for example `1_create_users.up.sql` and `1_create_users.down.sql`.
`migratekit.source.migration.parse` turns such a name into a frozen
`Migration` (`version`, `identifier`, `direction`, `raw`) and raises
`ParseError` (a `ValueError`) for names that do not match. Sources skip
files that do not match; two files with the same version and direction make
a file source raise `DuplicateMigrationError`.

`migratekit.source.migration.Migrations` is the ordered index the sources
use: `append`, `first`, `prev`, `next`, `up` and `down`, returning `None`
where there is nothing to return.

## Sources

Every source implements `migratekit.source.driver.Driver`: `first()`,
`prev(version)`, `next(version)`, `read_up(version)`,
`read_down(version)` (each of the last two returns an open binary stream and
an identifier), `close()` and `open(url)`. A version that does not exist
raises `FileNotFoundError`.

- `migratekit.source.file.File` reads a local directory. Open it with
  `File().open("file:///srv/app/migrations")`; relative paths such as
  `file://./migrations` are made absolute and `file://` alone means the
  current working directory.
- `migratekit.source.fsdriver.new(root, path)` reads the directory `path`
  inside any tree with the `pathlib.Path` reading interface: a
  `pathlib.Path`, a `zipfile.Path` or package resources.
  `PartialDriver` holds everything except `open`, for building drivers of
  your own; `FSDriver.open` always raises.
- `migratekit.source.bindata.with_instance(resource(names, asset_func))`
  serves in-memory assets: `asset_func(name)` returns the bytes of an asset.
- `migratekit.source.s3.with_instance(client, config)` lists the objects
  directly under a bucket prefix and reads them through `client`, which must
  offer `list_objects(Bucket=, Prefix=, Delimiter=)` and
  `get_object(Bucket=, Key=)` in the usual S3 client shape.
  `parse_uri("s3://bucket/prefix")` builds the `Config`.
- `migratekit.source.stub.Stub` holds a `Migrations` index in memory and
  returns each migration's identifier as its body; useful in tests.

Importing a source module registers it under a URL scheme (`file`, `bindata`,
`s3`, `stub`). `migratekit.source.driver.open_driver(url)` opens the
registered driver for the URL's scheme, `register(name, driver)` adds one
and `list_drivers()` lists them. The registered `bindata` and `s3` drivers
cannot be opened from a URL; build them with `with_instance`.

## Database drivers

A database is any subclass of `migratekit.migrate.DatabaseDriver`:

```python
from migratekit.migrate import NIL_VERSION, DatabaseDriver


class MemoryDatabase(DatabaseDriver):
    def __init__(self):
        self.state = (NIL_VERSION, False)
        self.executed = []

    def lock(self):
        pass

    def unlock(self):
        pass

    def run(self, body):
        self.executed.append(body)

    def set_version(self, version, dirty):
        self.state = (version, dirty)

    def version(self):
        return self.state

    def drop(self):
        self.executed.clear()

    def close(self):
        pass
```

## Running migrations

```python
import migratekit.source.file  # registers the "file" scheme
from migratekit.migrate import Migrate, NoChangeError

with Migrate.with_database_instance(
    "file:///srv/app/migrations", "memory", MemoryDatabase()
) as m:
    try:
        m.up()
    except NoChangeError:
        pass
    version, dirty = m.version()
```

`Migrate(source_name, source_driver, database_name, database_driver)`
pairs drivers you have already built. Its methods:

- `up()` / `down()` apply every remaining up or down migration.
- `steps(n)` applies `n` up migrations, or `-n` down migrations when `n`
  is negative; `ShortLimitError` reports how many steps were missing.
- `migrate(version)` moves up or down until `version` is current.
- `run(*migrations)` runs `migratekit.migration.Migration` objects
  directly, without consulting the source.
- `force(version)` sets the version and clears the dirty flag without
  running anything; `-1` means no version.
- `drop()` asks the database to delete everything.
- `version()` returns `(version, dirty)` and raises `NilVersionError`
  when nothing has been applied.
- `request_stop()` stops at the next safe point between migrations.
- `close()` closes source and database; `Migrate` is also a context manager.

Errors derive from `MigrateError`: `NoChangeError`, `NilVersionError`,
`InvalidVersionError`, `LockedError`, `LockTimeoutError` (after
`lock_timeout` seconds, default 15), `ShortLimitError` and `DirtyError`,
raised while the database is dirty until `force` is used. A version missing
from the source raises `FileNotFoundError`.

Set `m.logger` to an object with a `verbose` attribute and a
`log(message)` method to receive progress messages.

`migratekit.util` holds `MultiError`, `suint` and `filter_custom_query`,
which drops query parameters whose names start with `x-` from a URL.

## What the package does not do

- It contains no database drivers: every database is supplied as a
  `DatabaseDriver` subclass you write.
- It has no command-line tool; it is used as a library.
- It has no sources for hosted code repositories or cloud stores other than
  the S3-shaped client described above, and it creates no S3 client itself.

## Tests

```
pip install migratekit[test]
pytest
```