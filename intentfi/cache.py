"""Bounded, time-limited cache passed explicitly to the objects that use it."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")

_MISSING = object()


class TtlCache(Generic[V]):
    def __init__(
        self,
        maxsize: int = 256,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._items: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()
        self._lock = threading.Lock()

    def _lookup(self, key: Hashable) -> Any:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return _MISSING
            expires, value = entry
            if self._clock() >= expires:
                del self._items[key]
                return _MISSING
            self._items.move_to_end(key)
            return value

    def get(self, key: Hashable) -> Optional[V]:
        value = self._lookup(key)
        return None if value is _MISSING else value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._items[key] = (self._clock() + self.ttl, value)
            self._items.move_to_end(key)
            while len(self._items) > self.maxsize:
                self._items.popitem(last=False)

    def get_or_load(self, key: Hashable, loader: Callable[[], V]) -> V:
        value = self._lookup(key)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["TtlCache"]
