"""
Per-Loan Locking Module

Serializes repayments against the same loan so two concurrent calls cannot
both read one outstanding balance and decrement it independently.
"""

from contextlib import contextmanager
from typing import Dict
import threading


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class LoanLockRegistry:
    """
    Hands out one lock per loan id

    Entries are reference counted and dropped once no thread holds or waits
    for them, so the registry does not grow with the number of loans seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, loan_id: str):
        """Hold the lock for ``loan_id`` for the duration of the block"""
        with self._guard:
            entry = self._locks.get(loan_id)
            if entry is None:
                entry = self._locks[loan_id] = _LockEntry()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[loan_id]

    def active_count(self) -> int:
        """Number of loans currently locked or awaited"""
        with self._guard:
            return len(self._locks)
