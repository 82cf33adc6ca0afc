import zipfile
from pathlib import Path

import pytest

from migratekit.source.driver import Driver
from migratekit.source.fsdriver import FSDriver, PartialDriver, new
from migratekit.source.migration import DuplicateMigrationError

FILES = {
    "1_foobar.up.sql": "1 up",
    "1_foobar.down.sql": "1 down",
    "3_foobar.up.sql": "3 up",
    "4_foobar.up.sql": "4 up",
    "4_foobar.down.sql": "4 down",
    "5_foobar.down.sql": "5 down",
    "7_foobar.up.sql": "7 up",
    "7_foobar.down.sql": "7 down",
}


def _write(directory: Path, files: dict) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, body in files.items():
        (directory / name).write_text(body)


def _assert_standard(d) -> None:
    assert d.first() == 1
    for version, expected in [(3, 1), (4, 3), (5, 4), (7, 5)]:
        assert d.prev(version) == expected
    for version in (0, 1, 2, 6, 8, 9):
        with pytest.raises(FileNotFoundError):
            d.prev(version)
    for version, expected in [(1, 3), (3, 4), (4, 5), (5, 7)]:
        assert d.next(version) == expected
    for version in (0, 2, 6, 7, 8, 9):
        with pytest.raises(FileNotFoundError):
            d.next(version)
    for version in (1, 3, 4, 7):
        body, identifier = d.read_up(version)
        with body:
            assert body.read() == f"{version} up".encode()
        assert identifier == "foobar"
    for version in (0, 2, 5, 6, 8):
        with pytest.raises(FileNotFoundError):
            d.read_up(version)
    for version in (1, 4, 5, 7):
        body, identifier = d.read_down(version)
        with body:
            assert body.read() == f"{version} down".encode()
        assert identifier == "foobar"
    for version in (0, 2, 3, 6, 8):
        with pytest.raises(FileNotFoundError):
            d.read_down(version)


@pytest.fixture
def migration_tree(tmp_path: Path) -> Path:
    _write(tmp_path / "sql", FILES)
    (tmp_path / "sql" / "not-a-migration.txt").write_text("")
    (tmp_path / "sql" / "9_subdir.up.sql").mkdir()
    _write(tmp_path / "duplicates", {"1_foo.up.sql": "", "1_bar.up.sql": ""})
    _write(tmp_path / "no-migrations", {"readme.txt": ""})
    return tmp_path


class _NoOpenDriver(PartialDriver):
    def open(self, url: str) -> Driver:
        raise ValueError("X")


class _ExampleDriver(PartialDriver):
    def open(self, url: str) -> Driver:
        directory, _, path = url.partition(":")
        driver = _ExampleDriver()
        PartialDriver.init(driver, Path(directory), path)
        return driver


def test_new_ok(migration_tree):
    _assert_standard(new(migration_tree, "sql"))


def test_new_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        new(tmp_path / "does-not-exist", "")


def test_open_is_rejected(migration_tree):
    d = new(migration_tree / "sql", "")
    with pytest.raises(RuntimeError):
        d.open("")


def test_driver_example(migration_tree):
    d = _ExampleDriver().open(f"{migration_tree}:sql")
    reference = new(migration_tree, "sql")
    assert PartialDriver.first(d) == reference.first() == 1
    assert PartialDriver.next(d, 5) == reference.next(5) == 7
    _assert_standard(d)


@pytest.mark.parametrize(
    ("sub", "path"),
    [("sql", ""), ("", "sql"), ("", "./sql")],
)
def test_partial_driver_init_valid(migration_tree, sub, path):
    d = _NoOpenDriver()
    PartialDriver.init(d, migration_tree / sub if sub else migration_tree, path)
    assert PartialDriver.first(d) == 1
    _assert_standard(d)


def test_partial_driver_init_invalid_dir(migration_tree):
    with pytest.raises(FileNotFoundError):
        PartialDriver.init(_NoOpenDriver(), migration_tree / "does-not-exist", "")


def test_partial_driver_init_file_instead_of_dir(migration_tree):
    with pytest.raises(NotADirectoryError):
        PartialDriver.init(
            _NoOpenDriver(), migration_tree / "sql" / "1_foobar.up.sql", ""
        )


def test_partial_driver_init_duplicates(migration_tree):
    with pytest.raises(DuplicateMigrationError) as exc_info:
        PartialDriver.init(_NoOpenDriver(), migration_tree / "duplicates", "")
    assert exc_info.value.name == "1_foo.up.sql"
    assert exc_info.value.migration.version == 1
    assert str(exc_info.value) == "duplicate migration file: 1_foo.up.sql"


def test_first_with_no_migrations(migration_tree):
    d = _NoOpenDriver()
    PartialDriver.init(d, migration_tree / "no-migrations", "")
    with pytest.raises(FileNotFoundError):
        PartialDriver.first(d)


def test_read_of_removed_file_fails(migration_tree):
    d = new(migration_tree, "sql")
    (migration_tree / "sql" / "3_foobar.up.sql").unlink()
    with pytest.raises(FileNotFoundError):
        d.read_up(3)


def test_zip_archive(tmp_path):
    archive = tmp_path / "migrations.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for name, body in FILES.items():
            zf.writestr(f"testdata/migrations/{name}", body)
    with zipfile.ZipFile(archive) as zf:
        d = new(zipfile.Path(zf), "testdata/migrations")
        _assert_standard(d)


class _ClosingTree:
    def __init__(self, path: Path) -> None:
        self._path = path
        self.closed = False

    def joinpath(self, *parts):
        return self._path.joinpath(*parts)

    def close(self) -> None:
        self.closed = True


def test_close_closes_closable_tree(migration_tree):
    tree = _ClosingTree(migration_tree)
    d = new(tree, "sql")
    assert d.first() == 1
    d.close()
    assert tree.closed is True


def test_errors_name_the_path(migration_tree):
    d = new(migration_tree, "sql")
    with pytest.raises(FileNotFoundError) as exc_info:
        d.next(7)
    assert exc_info.value.filename == "sql"
    assert exc_info.value.strerror == "next for version 7"


def test_fsdriver_is_partial_driver(migration_tree):
    d = new(migration_tree, "sql")
    assert isinstance(d, FSDriver)
    assert isinstance(d, PartialDriver)
    assert d.first() == 1