from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ProductLocks:
    """Per-product mutual exclusion for ledger writes within one process.

    Locks are created on first use and dropped once no thread holds or waits
    on them. ``_guard`` only protects the registry, never the work done while
    a product lock is held, so unrelated products never wait on each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}
        self._waiters: dict[int, int] = {}

    @contextmanager
    def hold(self, product_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(product_id, threading.Lock())
            self._waiters[product_id] = self._waiters.get(product_id, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[product_id] -= 1
                if self._waiters[product_id] == 0:
                    del self._waiters[product_id]
                    del self._locks[product_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


product_locks = ProductLocks()
