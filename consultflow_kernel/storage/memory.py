"""In-memory record store."""

from __future__ import annotations

import json
from typing import Any, Sequence, TypeVar

from consultflow_kernel.storage.base import CompanyScopedStore, RecordCodec

T = TypeVar("T")


class InMemoryStore(CompanyScopedStore[T]):
    """
    Dict-backed store for tests and single-process use.

    With a ``codec`` every save is serialized to JSON text and every load
    decodes it again, so tests exercise the same encoding as the SQL store.
    """

    def __init__(self, collection: str, codec: RecordCodec[T] | None = None):
        super().__init__(collection)
        self._codec = codec
        self._data: dict[str, Any] = {}

    def load(self, company_id: str) -> list[T]:
        stored = self._data.get(company_id)
        if stored is None:
            return []
        if self._codec is None:
            return list(stored)
        return [self._codec.decode(item) for item in json.loads(stored)]

    def save(self, company_id: str, records: Sequence[T]) -> None:
        with self.locked(company_id):
            if self._codec is None:
                self._data[company_id] = tuple(records)
            else:
                self._data[company_id] = json.dumps(
                    [self._codec.encode(r) for r in records]
                )

    def company_ids(self) -> list[str]:
        return sorted(self._data)
