"""Company-scoped record stores."""

from consultflow_kernel.storage.base import GLOBAL_SCOPE, CompanyScopedStore, RecordCodec
from consultflow_kernel.storage.memory import InMemoryStore
from consultflow_kernel.storage.sql import SqlAlchemyStore

__all__ = [
    "GLOBAL_SCOPE",
    "CompanyScopedStore",
    "RecordCodec",
    "InMemoryStore",
    "SqlAlchemyStore",
]
