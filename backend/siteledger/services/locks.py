from __future__ import annotations
"""Per-entity logical locks.

Mutations on the same record are serialized; mutations on different records
proceed independently. Acquisition is bounded so no caller waits forever.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterable, Iterator, Tuple

from siteledger.errors import LedgerTimeoutError

LockKey = Tuple[str, Hashable]


class _Slot:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class EntityLocks:
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._slots: Dict[LockKey, _Slot] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: LockKey) -> _Slot:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
            return slot

    def _release(self, key: LockKey, slot: _Slot) -> None:
        with self._guard:
            slot.users -= 1
            if slot.users == 0:
                self._slots.pop(key, None)

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        """Hold locks for every key; keys are taken in sorted order to avoid deadlock."""
        ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
        acquired = []
        try:
            for key in ordered:
                slot = self._checkout(key)
                if not slot.lock.acquire(timeout=self.timeout):
                    self._release(key, slot)
                    raise LedgerTimeoutError(f'Timed out waiting for lock on {key[0]} {key[1]}', entity=key[0], entity_id=key[1])
                acquired.append((key, slot))
            yield
        finally:
            for key, slot in reversed(acquired):
                slot.lock.release()
                self._release(key, slot)

    def active_keys(self) -> Iterable[LockKey]:
        with self._guard:
            return list(self._slots.keys())

__all__ = ['EntityLocks', 'LockKey']
