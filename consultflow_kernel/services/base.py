"""
BaseService -- common constructor for kernel services.

Responsibility:
    Every service receives its store and clock from the caller.  Services
    never create stores or read the wall clock themselves, so tests can wire
    in-memory stores and a DeterministicClock.

Architecture position:
    Kernel > Services -- imperative shell over the pure domain functions.

Invariants enforced:
    - Read-modify-write goes through ``store.update`` (or runs inside
      ``store.locked``) and always works on a fresh read.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import uuid4

from consultflow_kernel.domain.clock import Clock, SystemClock
from consultflow_kernel.storage.base import CompanyScopedStore

RecordType = TypeVar("RecordType")


def new_id() -> str:
    return str(uuid4())


class BaseService(ABC, Generic[RecordType]):
    """
    Abstract base class for kernel services.

    Contract:
        ``store`` is the service's primary collection.  Services that touch
        other collections receive them (or their owning services) explicitly.
    """

    def __init__(
        self,
        store: CompanyScopedStore[RecordType],
        clock: Clock | None = None,
    ):
        self.store = store
        self._clock = clock or SystemClock()
