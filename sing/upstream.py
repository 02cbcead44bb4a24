"""Walking chains of wrapped objects to find one of a given kind."""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class WithUpstream(Protocol):
    """An object that wraps another one."""

    def upstream(self) -> Any:
        """Return the wrapped object."""
        ...


def cast(obj: Any, kind: type) -> Optional[Any]:
    """Return ``obj`` or the first object in its upstream chain that is a ``kind``.

    Returns ``None`` when no object in the chain matches.
    """
    current = obj
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        if isinstance(current, kind):
            return current
        if not isinstance(current, WithUpstream):
            return None
        seen.add(id(current))
        current = current.upstream()
    return None


def must_cast(obj: Any, kind: type) -> Any:
    """Like :func:`cast`, but raise ``TypeError`` when nothing matches."""
    value = cast(obj, kind)
    if value is None:
        raise TypeError(f"{type(obj).__name__} cannot be cast to {kind.__name__}")
    return value