"""Grace ledger storage abstractions."""
from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator, List, Optional, Protocol
from weakref import WeakValueDictionary

from .models import GraceLedgerEntry, GraceState


class GraceLedger(Protocol):
    """Keyed store holding at most one grace entry per holder."""

    def get(self, holder_id: str) -> Optional[GraceLedgerEntry]:
        ...

    def save(self, entry: GraceLedgerEntry) -> GraceLedgerEntry:
        ...

    def delete(self, holder_id: str) -> bool:
        ...

    def list_entries(self, state: Optional[GraceState] = None) -> List[GraceLedgerEntry]:
        ...


class InMemoryGraceLedger:
    """Simple in-memory ledger suitable for tests and local development."""

    def __init__(self) -> None:
        self._entries: Dict[str, GraceLedgerEntry] = {}
        self._lock = Lock()

    def get(self, holder_id: str) -> Optional[GraceLedgerEntry]:
        with self._lock:
            return self._entries.get(holder_id)

    def save(self, entry: GraceLedgerEntry) -> GraceLedgerEntry:
        with self._lock:
            self._entries[entry.holder_id] = entry
        return entry

    def delete(self, holder_id: str) -> bool:
        with self._lock:
            return self._entries.pop(holder_id, None) is not None

    def list_entries(self, state: Optional[GraceState] = None) -> List[GraceLedgerEntry]:
        with self._lock:
            entries = list(self._entries.values())
        if state is not None:
            entries = [entry for entry in entries if entry.state == state]
        return sorted(entries, key=lambda entry: entry.holder_id)


class HolderLockRegistry:
    """Hands out one re-entrant lock per holder id.

    A holder's lock lives only while some caller holds a reference to it, so
    the registry does not grow with every holder ever seen.
    """

    def __init__(self) -> None:
        self._locks: "WeakValueDictionary[str, RLock]" = WeakValueDictionary()
        self._registry_lock = Lock()

    def _lock_for(self, holder_id: str) -> RLock:
        with self._registry_lock:
            lock = self._locks.get(holder_id)
            if lock is None:
                lock = RLock()
                self._locks[holder_id] = lock
            return lock

    @contextmanager
    def hold(self, holder_id: str) -> Iterator[None]:
        lock = self._lock_for(holder_id)
        with lock:
            yield


__all__ = ["GraceLedger", "HolderLockRegistry", "InMemoryGraceLedger"]
