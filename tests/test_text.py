import pytest

from sing.text import (
    substring_after,
    substring_after_last,
    substring_before,
    substring_before_last,
    substring_between,
)


@pytest.mark.parametrize(
    "func",
    [substring_after, substring_after_last, substring_before, substring_before_last],
)
def test_missing_separator_returns_input(func):
    assert func("hello world", "#") == "hello world"


@pytest.mark.parametrize("s", ["a.b.c", ".lead", "trail.", "x.y"])
def test_first_split_reassembles(s):
    assert substring_before(s, ".") + "." + substring_after(s, ".") == s


@pytest.mark.parametrize("s", ["a.b.c", ".lead", "trail.", "x.y"])
def test_last_split_reassembles(s):
    assert substring_before_last(s, ".") + "." + substring_after_last(s, ".") == s


def test_first_and_last_differ_with_repeated_separator():
    s = "one::two::three"
    assert substring_after(s, "::") == "two::three"
    assert substring_after_last(s, "::") == "three"
    assert substring_before(s, "::") == "one"
    assert substring_before_last(s, "::") == "one::two"


def test_between():
    assert substring_between("key=[value]rest", "[", "]") == "value"


def test_between_missing_markers_falls_back():
    assert substring_between("plain", "[", "]") == "plain"