"""
Module: consultflow_kernel.db.base
Responsibility: Declarative base classes for the SQLAlchemy ORM models that
    back the SQL record store.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; must not import from models/, services/ or storage/.

Invariants enforced:
    - datetime maps to DateTime(timezone=True); stored times are timezone-aware.
    - TrackedBase stamps created_at / updated_at on every row.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (safe for monotonic versions).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }


class TrackedBase(Base):
    """Abstract base with creation and modification timestamps."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
