"""Filters that detect repeated salts within a time window."""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable


class Filter(ABC):
    """Decides whether a salt is seen for the first time."""

    @abstractmethod
    def check(self, salt: bytes) -> bool:
        """Record ``salt`` and return ``True`` if it was not seen recently."""


class SimpleFilter(Filter):
    """A dictionary-backed filter that forgets salts older than ``timeout`` seconds."""

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._last_clean = clock()
        self._pool: dict[bytes, float] = {}

    def check(self, salt: bytes) -> bool:
        now = self._clock()
        key = bytes(salt)
        with self._lock:
            if now - self._last_clean > self._timeout:
                self._pool = {
                    old: added
                    for old, added in self._pool.items()
                    if now - added <= self._timeout
                }
                exists = key in self._pool
                self._last_clean = now
            else:
                added = self._pool.get(key)
                exists = added is not None and now - added <= self._timeout
            if not exists:
                self._pool[key] = now
            return not exists