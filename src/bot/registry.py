"""Session registry: per-session values with get-or-create and a per-key lock."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Holds one value per session id.

    Values are created lazily by ``factory``. Each key also gets its own
    ``asyncio.Lock`` so a whole turn can run exclusively for one session
    without blocking any other session.
    """

    def __init__(self, factory: Callable[[], T] | None = None) -> None:
        self._factory = factory
        self._values: dict[str, T] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get_or_create(self, key: str) -> T:
        """Return the value for *key*, creating it if needed."""
        value = self._values.get(key)
        if value is None:
            if self._factory is None:
                msg = f"No value for '{key}' and no factory to create one"
                raise KeyError(msg)
            value = self._factory()
            self._values[key] = value
        return value

    def get(self, key: str) -> T | None:
        return self._values.get(key)

    def set(self, key: str, value: T) -> None:
        self._values[key] = value

    def pop(self, key: str) -> T | None:
        return self._values.pop(key, None)

    def lock(self, key: str) -> asyncio.Lock:
        """Return the lock guarding *key*. Locks are never shared across keys."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def keys(self) -> list[str]:
        return list(self._values.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def clear(self) -> None:
        """Drop every value and lock. For tests only."""
        self._values.clear()
        self._locks.clear()
