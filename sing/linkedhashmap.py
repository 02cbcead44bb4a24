"""A mapping that remembers insertion order, backed by a linked list."""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from .linkedlist import Element, LinkedList

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class MapEntry(Generic[K, V]):
    """A key and its value."""

    key: K
    value: V


class LinkedHashMap(MutableMapping):
    """A dictionary ordered by first insertion; updating a key keeps its place."""

    def __init__(self, other: Union[Mapping, Iterable, None] = None) -> None:
        self._entries = LinkedList()
        self._index: dict[Any, Element] = {}
        if other is not None:
            self.put_all(other)

    def __getitem__(self, key: Any) -> Any:
        return self._index[key].value.value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: Any) -> None:
        element = self._index.pop(key)
        self._entries.remove(element)

    def __iter__(self) -> Iterator[Any]:
        for entry in self._entries:
            yield entry.key

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __repr__(self) -> str:
        items = ", ".join(f"{e.key!r}: {e.value!r}" for e in self._entries)
        return f"LinkedHashMap({{{items}}})"

    def put(self, key: Any, value: Any) -> Optional[Any]:
        """Set ``key`` to ``value`` and return the previous value, if any."""
        element = self._index.get(key)
        if element is not None:
            old = element.value.value
            element.value.value = value
            return old
        self._index[key] = self._entries.push_back(MapEntry(key, value))
        return None

    def remove(self, key: Any) -> bool:
        """Remove ``key``; return whether it was present."""
        element = self._index.pop(key, None)
        if element is None:
            return False
        self._entries.remove(element)
        return True

    def put_all(self, other: Union["LinkedHashMap", Mapping, Iterable]) -> None:
        """Copy every entry of ``other`` into this map, in ``other``'s order."""
        if isinstance(other, LinkedHashMap):
            pairs = [(e.key, e.value) for e in other.entries()]
        elif isinstance(other, Mapping):
            pairs = list(other.items())
        else:
            pairs = list(other)
        for key, value in pairs:
            self.put(key, value)

    def clear(self) -> None:
        self._entries.clear()
        self._index.clear()

    def entries(self) -> list[MapEntry]:
        """Return copies of the entries in insertion order."""
        return [MapEntry(e.key, e.value) for e in self._entries]