"""A doubly linked list whose elements stay valid handles across edits."""

from typing import Any, Iterator, Optional


class Element:
    """A node of a :class:`LinkedList`, holding ``value``."""

    __slots__ = ("value", "_next", "_prev", "_list")

    def __init__(self, value: Any = None) -> None:
        self.value = value
        self._next: Optional["Element"] = None
        self._prev: Optional["Element"] = None
        self._list: Optional["LinkedList"] = None

    def next(self) -> Optional["Element"]:
        """Return the following element, or ``None`` at the end."""
        following = self._next
        if self._list is not None and following is not self._list._root:
            return following
        return None

    def prev(self) -> Optional["Element"]:
        """Return the preceding element, or ``None`` at the start."""
        preceding = self._prev
        if self._list is not None and preceding is not self._list._root:
            return preceding
        return None

    def list(self) -> Optional["LinkedList"]:
        """Return the list holding this element, or ``None`` once removed."""
        return self._list

    def __repr__(self) -> str:
        return f"Element({self.value!r})"


class LinkedList:
    """A doubly linked list built as a ring around a sentinel node."""

    def __init__(self) -> None:
        self._root = Element()
        self._root._next = self._root
        self._root._prev = self._root
        self._len = 0

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[Any]:
        element = self.front()
        while element is not None:
            yield element.value
            element = element.next()

    def __reversed__(self) -> Iterator[Any]:
        element = self.back()
        while element is not None:
            yield element.value
            element = element.prev()

    def __repr__(self) -> str:
        return f"LinkedList({list(self)!r})"

    def front(self) -> Optional[Element]:
        """Return the first element, or ``None`` if empty."""
        return self._root._next if self._len else None

    def back(self) -> Optional[Element]:
        """Return the last element, or ``None`` if empty."""
        return self._root._prev if self._len else None

    def clear(self) -> None:
        """Remove every element."""
        element = self._root._next
        while element is not self._root:
            following = element._next
            element._next = element._prev = None
            element._list = None
            element = following
        self._root._next = self._root
        self._root._prev = self._root
        self._len = 0

    def _insert(self, element: Element, at: Element) -> Element:
        element._prev = at
        element._next = at._next
        at._next._prev = element
        at._next = element
        element._list = self
        self._len += 1
        return element

    def _unlink(self, element: Element) -> None:
        element._prev._next = element._next
        element._next._prev = element._prev
        element._next = None
        element._prev = None
        element._list = None
        self._len -= 1

    def _move(self, element: Element, at: Element) -> None:
        if element is at:
            return
        element._prev._next = element._next
        element._next._prev = element._prev
        element._prev = at
        element._next = at._next
        at._next._prev = element
        at._next = element

    def remove(self, element: Element) -> Any:
        """Remove ``element`` if it belongs to this list and return its value."""
        if element._list is self:
            self._unlink(element)
        return element.value

    def push_front(self, value: Any) -> Element:
        """Insert ``value`` at the front and return its element."""
        return self._insert(Element(value), self._root)

    def push_back(self, value: Any) -> Element:
        """Insert ``value`` at the back and return its element."""
        return self._insert(Element(value), self._root._prev)

    def insert_before(self, value: Any, mark: Element) -> Optional[Element]:
        """Insert ``value`` before ``mark``; ``None`` if ``mark`` is not in this list."""
        if mark._list is not self:
            return None
        return self._insert(Element(value), mark._prev)

    def insert_after(self, value: Any, mark: Element) -> Optional[Element]:
        """Insert ``value`` after ``mark``; ``None`` if ``mark`` is not in this list."""
        if mark._list is not self:
            return None
        return self._insert(Element(value), mark)

    def move_to_front(self, element: Element) -> None:
        """Move ``element`` to the front; no-op if it is not in this list."""
        if element._list is not self or self._root._next is element:
            return
        self._move(element, self._root)

    def move_to_back(self, element: Element) -> None:
        """Move ``element`` to the back; no-op if it is not in this list."""
        if element._list is not self or self._root._prev is element:
            return
        self._move(element, self._root._prev)

    def move_before(self, element: Element, mark: Element) -> None:
        """Move ``element`` just before ``mark`` when both are in this list."""
        if element._list is not self or element is mark or mark._list is not self:
            return
        self._move(element, mark._prev)

    def move_after(self, element: Element, mark: Element) -> None:
        """Move ``element`` just after ``mark`` when both are in this list."""
        if element._list is not self or element is mark or mark._list is not self:
            return
        self._move(element, mark)

    def push_back_list(self, other: "LinkedList") -> None:
        """Append a copy of ``other``'s values; ``other`` may be this list."""
        for value in list(other):
            self.push_back(value)

    def push_front_list(self, other: "LinkedList") -> None:
        """Prepend a copy of ``other``'s values; ``other`` may be this list."""
        for value in list(reversed(other)):
            self.push_front(value)

    def pop_back(self) -> Any:
        """Remove and return the last value; raise ``IndexError`` if empty."""
        if not self._len:
            raise IndexError("pop from empty list")
        element = self._root._prev
        self._unlink(element)
        return element.value

    def pop_front(self) -> Any:
        """Remove and return the first value; raise ``IndexError`` if empty."""
        if not self._len:
            raise IndexError("pop from empty list")
        element = self._root._next
        self._unlink(element)
        return element.value