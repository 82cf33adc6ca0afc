"""Source driver reading migration files from a local directory (``file://``)."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import unquote, urlsplit

from migratekit.source.driver import register
from migratekit.source.fsdriver import PartialDriver

__all__ = ["File", "parse_url"]


class File(PartialDriver):
    """Reads migrations from the directory named in a ``file://`` URL."""

    def __init__(self) -> None:
        super().__init__()
        self.url = ""
        self.path = ""

    def open(self, url: str) -> File:
        directory = parse_url(url)
        driver = File()
        driver.url = url
        driver.path = directory
        driver.init(Path(directory), ".")
        return driver


def parse_url(url: str) -> str:
    """Return the absolute directory named by a ``file`` URL.

    Host and path are joined, so ``file://./foo`` names ``./foo``; an empty
    path means the current working directory.
    """
    parts = urlsplit(url)
    path = unquote(parts.netloc + parts.path)
    if not path:
        return os.getcwd()
    if not path.startswith("/"):
        return os.path.abspath(path)
    return path


register("file", File())