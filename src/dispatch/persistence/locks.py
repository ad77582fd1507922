"""Mutual-exclusion regions for dispatch mutations."""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator, Literal


class LockManager:
    """Hands out per-order and per-driver locks.

    Lock order is fixed: the order lock first, then driver locks sorted by id.
    An order lock is never requested while a driver lock is held, which rules
    out lock-order cycles between concurrent operations. With the ``global``
    strategy every region collapses to one re-entrant lock.
    """

    def __init__(self, strategy: Literal["striped", "global"] = "striped") -> None:
        self.strategy = strategy
        self._registry_lock = threading.Lock()
        self._global = threading.RLock()
        self._orders: dict[str, threading.Lock] = {}
        self._drivers: dict[str, threading.Lock] = {}

    def _lock_for(self, registry: dict[str, threading.Lock], key: str) -> threading.Lock:
        with self._registry_lock:
            lock = registry.get(key)
            if lock is None:
                lock = registry[key] = threading.Lock()
            return lock

    @contextmanager
    def order(self, order_id: str) -> Iterator[None]:
        if self.strategy == "global":
            with self._global:
                yield
            return
        with self._lock_for(self._orders, order_id):
            yield

    @contextmanager
    def drivers(self, driver_ids: Iterable[str | None]) -> Iterator[None]:
        if self.strategy == "global":
            with self._global:
                yield
            return
        keys = sorted({driver_id for driver_id in driver_ids if driver_id})
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self._lock_for(self._drivers, key))
            yield
