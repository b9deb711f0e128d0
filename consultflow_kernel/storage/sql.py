"""
SqlAlchemyStore -- record store backed by the ``company_records`` table.

Each (collection, company) pair is one row whose ``payload`` holds the
encoded collection.  ``save`` and ``update`` take ``SELECT ... FOR UPDATE``
on PostgreSQL so writers in other processes serialize too.  A unique-key
collision on a company's first row is retried once.
"""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from consultflow_kernel.db.engine import get_session_factory, session_scope
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.models.company_record import CompanyRecord
from consultflow_kernel.storage.base import CompanyScopedStore, RecordCodec

logger = get_logger("storage.sql")

T = TypeVar("T")
R = TypeVar("R")


class SqlAlchemyStore(CompanyScopedStore[T]):
    """
    Contract:
        Tables must exist (``create_tables()``) before first use.

    Guarantees:
        - A save writes exactly one row; it commits or rolls back as a whole.
        - ``version`` on the row increments with every save.
    """

    def __init__(
        self,
        collection: str,
        codec: RecordCodec[T],
        session_factory: sessionmaker[Session] | None = None,
    ):
        super().__init__(collection)
        self._codec = codec
        self._session_factory = session_factory

    def _factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def _select_row(self, session: Session, company_id: str, for_update: bool = False):
        stmt = select(CompanyRecord).where(
            CompanyRecord.collection == self.collection,
            CompanyRecord.company_id == company_id,
        )
        if for_update and session.get_bind().dialect.name == "postgresql":
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    def _write(
        self,
        session: Session,
        company_id: str,
        row: CompanyRecord | None,
        records: Sequence[T],
    ) -> int:
        payload = [self._codec.encode(r) for r in records]
        if row is None:
            row = CompanyRecord(
                collection=self.collection,
                company_id=company_id,
                payload=payload,
                version=1,
            )
            session.add(row)
        else:
            row.payload = payload
            row.version = row.version + 1
        session.flush()
        return row.version

    def _retry_first_insert(self, company_id: str, attempt: Callable[[], R]) -> R:
        # FOR UPDATE cannot lock a row that does not exist yet, so two
        # writers may both insert a company's first row; the loser retries
        # once against the winner's row.
        try:
            return attempt()
        except IntegrityError:
            logger.info(
                "collection_insert_race_retry",
                extra={"collection": self.collection, "company_id": company_id},
            )
            return attempt()

    def load(self, company_id: str) -> list[T]:
        with session_scope(self._factory()) as session:
            row = self._select_row(session, company_id)
            if row is None:
                return []
            return [self._codec.decode(item) for item in row.payload]

    def save(self, company_id: str, records: Sequence[T]) -> None:
        def _attempt() -> int:
            with session_scope(self._factory()) as session:
                row = self._select_row(session, company_id, for_update=True)
                return self._write(session, company_id, row, records)

        with self.locked(company_id):
            version = self._retry_first_insert(company_id, _attempt)
        logger.debug(
            "collection_saved",
            extra={
                "collection": self.collection,
                "company_id": company_id,
                "record_count": len(records),
                "version": version,
            },
        )

    def update(
        self,
        company_id: str,
        mutate: Callable[[list[T]], list[T]],
    ) -> list[T]:
        """
        Read, mutate and write back in one transaction.

        ``mutate`` runs a second time, on the freshly read records, when
        another process inserted the company's first row concurrently.
        """
        def _attempt() -> list[T]:
            with session_scope(self._factory()) as session:
                row = self._select_row(session, company_id, for_update=True)
                current = (
                    [] if row is None
                    else [self._codec.decode(item) for item in row.payload]
                )
                updated = mutate(current)
                self._write(session, company_id, row, updated)
            return updated

        with self.locked(company_id):
            return self._retry_first_insert(company_id, _attempt)

    def company_ids(self) -> list[str]:
        with session_scope(self._factory()) as session:
            stmt = (
                select(CompanyRecord.company_id)
                .where(CompanyRecord.collection == self.collection)
                .order_by(CompanyRecord.company_id)
            )
            return list(session.execute(stmt).scalars())
