"""
Per-key locking for in-memory stores.

Writers that touch the same key are serialized; writers on unrelated
keys proceed in parallel. Lock objects are created on demand and
dropped once no thread holds or waits for them.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class _Entry:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """
    A family of mutexes indexed by string key.

    Example:
        >>> locks = KeyedLock()
        >>> with locks.hold('email:alice@example.com', 'username:alice'):
        ...     pass
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """
        Acquire the locks for all keys, in sorted order.

        Sorted acquisition means two callers holding overlapping key sets
        can never deadlock.
        """
        ordered = sorted(set(keys))
        with self._guard:
            entries = []
            for key in ordered:
                entry = self._entries.get(key)
                if entry is None:
                    entry = self._entries[key] = _Entry()
                entry.users += 1
                entries.append(entry)

        acquired: List[_Entry] = []
        try:
            for entry in entries:
                entry.lock.acquire()
                acquired.append(entry)
            yield
        finally:
            for entry in reversed(acquired):
                entry.lock.release()
            with self._guard:
                for key, entry in zip(ordered, entries):
                    entry.users -= 1
                    if entry.users == 0:
                        del self._entries[key]

    def __len__(self) -> int:
        """Number of keys currently held or awaited."""
        with self._guard:
            return len(self._entries)
