from urllib.parse import parse_qs, urlsplit

import pytest

from migratekit.util import MultiError, filter_custom_query, suint


def test_suint_rejects_negative_input():
    with pytest.raises(ValueError):
        suint(-1)


def test_suint_zero():
    assert suint(0) == 0


def test_suint_positive():
    assert suint(42) == 42


def test_filter_custom_query():
    filtered = filter_custom_query("foo://host?a=b&x-custom=foo&c=d&ok=y")
    query = parse_qs(urlsplit(filtered).query)
    assert "x-custom" not in query
    assert query["ok"] == ["y"]


def test_filter_custom_query_sorted_encoding():
    assert filter_custom_query("foo://host?ok=y&x-custom=foo&c=d&a=b") == "foo://host?a=b&c=d&ok=y"


def test_filter_custom_query_keeps_short_keys():
    assert filter_custom_query("foo://host?x=1&x-y=2") == "foo://host?x=1"


def test_filter_custom_query_removes_all():
    assert filter_custom_query("foo://host/path?x-a=1") == "foo://host/path"


def test_multi_error_joins_messages():
    err = MultiError(ValueError("first"), None, RuntimeError("second"))
    assert str(err) == "first and second"
    assert len(err.errors) == 2


def test_multi_error_skips_empty_messages():
    err = MultiError(ValueError(""), ValueError("only"))
    assert str(err) == "only"


def test_multi_error_empty():
    err = MultiError(None, None)
    assert err.errors == []
    assert str(err) == ""