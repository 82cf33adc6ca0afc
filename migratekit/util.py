"""Small helpers shared across the package."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

__all__ = ["MultiError", "suint", "filter_custom_query"]


class MultiError(Exception):
    """An error that holds several errors; ``None`` entries are dropped."""

    def __init__(self, *args: BaseException | None) -> None:
        self.errors: list[BaseException] = [e for e in args if e is not None]
        super().__init__(*self.errors)

    def __str__(self) -> str:
        return " and ".join(text for text in map(str, self.errors) if text)


def suint(n: int) -> int:
    """Return ``n`` as an unsigned version number, rejecting negative values."""
    if n < 0:
        raise ValueError(f"suint({n}) expects input >= 0")
    return n


def filter_custom_query(url: str) -> str:
    """Return ``url`` with every query parameter whose name starts with ``x-`` removed.

    The remaining parameters are re-encoded sorted by name.
    """
    parts = urlsplit(url)
    grouped: dict[str, list[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if not key.startswith("x-"):
            grouped.setdefault(key, []).append(value)
    query = urlencode([(key, value) for key in sorted(grouped) for value in grouped[key]])
    return urlunsplit(parts._replace(query=query))