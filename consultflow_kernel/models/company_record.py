"""
CompanyRecord -- one persisted collection for one company.

The record store is a key-value store keyed by (collection, company_id).  The
whole collection (e.g. every trial balance of a company) lives in one JSON
document, so a save is a single-row write and therefore atomic.
"""

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from consultflow_kernel.db.base import TrackedBase


class CompanyRecord(TrackedBase):
    """
    Persisted collection document.

    Guarantees:
        - At most one row per (collection, company_id).
        - ``version`` increments on every save.
    """

    __tablename__ = "company_records"

    __table_args__ = (
        UniqueConstraint("collection", "company_id", name="uq_company_record_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    company_id: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<CompanyRecord {self.collection}/{self.company_id} v{self.version}>"
        )
