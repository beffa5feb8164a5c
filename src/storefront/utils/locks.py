"""Per-resource locks for ledger read-modify-write cycles.

Each ledger reloads its aggregate, checks the condition and persists the
change while holding the lock for that one aggregate. Reservations against
different products never wait on each other.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLocks:
    """Hands out one lock per key.

    An entry exists only while someone holds or waits on it; the last
    holder to leave removes it.
    """

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._guard = threading.Lock()
        self._locks: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, key: str) -> _Entry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _Entry()
                self._locks[key] = entry
            entry.holders += 1
            return entry

    def _release_entry(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key) -> Iterator[None]:
        key = str(key)
        entry = self._acquire_entry(key)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(key, entry)


product_locks = KeyedLocks("product")
discount_locks = KeyedLocks("discount")
balance_locks = KeyedLocks("loyalty")
email_locks = KeyedLocks("email")
