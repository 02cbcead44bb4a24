"""Helpers for slicing strings around a separator."""


def substring_after(s: str, substr: str) -> str:
    """Return the part of ``s`` after the first ``substr``, or ``s`` if absent."""
    index = s.find(substr)
    if index == -1:
        return s
    return s[index + len(substr):]


def substring_after_last(s: str, substr: str) -> str:
    """Return the part of ``s`` after the last ``substr``, or ``s`` if absent."""
    index = s.rfind(substr)
    if index == -1:
        return s
    return s[index + len(substr):]


def substring_before(s: str, substr: str) -> str:
    """Return the part of ``s`` before the first ``substr``, or ``s`` if absent."""
    index = s.find(substr)
    if index == -1:
        return s
    return s[:index]


def substring_before_last(s: str, substr: str) -> str:
    """Return the part of ``s`` before the last ``substr``, or ``s`` if absent."""
    index = s.rfind(substr)
    if index == -1:
        return s
    return s[:index]


def substring_between(s: str, after: str, before: str) -> str:
    """Return the text following ``after`` and preceding the next ``before``."""
    return substring_before(substring_after(s, after), before)