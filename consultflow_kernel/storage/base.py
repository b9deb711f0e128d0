"""
CompanyScopedStore -- key-value persistence keyed by company.

Responsibility:
    Abstract contract for storing one collection of frozen records per
    company.  Each ``save`` replaces the company's whole collection in one
    operation; ``update`` runs a read-modify-write under the company's lock
    and re-reads inside the lock, so concurrent writers never lose updates.

Architecture position:
    Kernel > Storage.  Services depend on this contract; concrete stores are
    ``InMemoryStore`` (tests) and ``SqlAlchemyStore`` (SQL databases).

Invariants enforced:
    - Writes are atomic per save.
    - ``update`` and ``locked`` serialize writers per (store, company).
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, Sequence, TypeVar

T = TypeVar("T")

# Company key for collections that are not owned by one company
GLOBAL_SCOPE = "__global__"


class RecordCodec(ABC, Generic[T]):
    """Converts a record to a JSON-safe dict and back."""

    @abstractmethod
    def encode(self, record: T) -> dict[str, Any]:
        ...

    @abstractmethod
    def decode(self, data: dict[str, Any]) -> T:
        ...


class CompanyScopedStore(ABC, Generic[T]):
    """
    Abstract store of one record collection per company.

    Contract:
        ``load`` returns the current records (possibly empty).  ``save``
        persists the full list.  Callers that read, change and write must do
        so through ``update`` or inside ``locked``.

    Non-goals:
        No querying beyond a full-collection read; collections are small.
    """

    def __init__(self, collection: str):
        self.collection = collection
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, company_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(company_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[company_id] = lock
            return lock

    @contextmanager
    def locked(self, company_id: str) -> Iterator[None]:
        """Hold the company's write lock (re-entrant)."""
        lock = self._lock_for(company_id)
        with lock:
            yield

    @abstractmethod
    def load(self, company_id: str) -> list[T]:
        ...

    @abstractmethod
    def save(self, company_id: str, records: Sequence[T]) -> None:
        ...

    @abstractmethod
    def company_ids(self) -> list[str]:
        """Companies with a stored collection, sorted."""
        ...

    def update(
        self,
        company_id: str,
        mutate: Callable[[list[T]], list[T]],
    ) -> list[T]:
        """
        Apply ``mutate`` to a fresh read and save the result atomically.

        If ``mutate`` raises, nothing is written and the exception propagates.
        """
        with self.locked(company_id):
            current = self.load(company_id)
            updated = mutate(list(current))
            self.save(company_id, updated)
            return updated

    def append(self, company_id: str, record: T) -> None:
        self.update(company_id, lambda records: records + [record])
