"""
TransactionService -- imported and manually keyed journal transactions.

Foreign-currency transactions are converted into the company base currency
at the rate recorded for their own date.  A missing rate falls back to 1.0;
the batch result carries ``fx_fallback_used`` and the missing (currency,
date) pairs.  The batch is persisted in one write, then one audit event per
transaction is appended.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Sequence

from consultflow_kernel.domain.clock import Clock
from consultflow_kernel.domain.dtos import (
    AuditAction,
    AuditEntity,
    JournalTransaction,
)
from consultflow_kernel.domain.fx import DataGap, FxWarnings
from consultflow_kernel.exceptions import DuplicateRecordError
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.audit_service import AuditService
from consultflow_kernel.services.base import BaseService
from consultflow_kernel.services.fx_service import FxService
from consultflow_kernel.storage.base import CompanyScopedStore

logger = get_logger("services.transaction")


@dataclass(frozen=True)
class TransactionSaveResult:
    transactions: tuple[JournalTransaction, ...]
    fx_fallback_used: bool
    data_gaps: tuple[DataGap, ...] = ()


class TransactionService(BaseService[JournalTransaction]):
    def __init__(
        self,
        store: CompanyScopedStore[JournalTransaction],
        fx_service: FxService,
        audit_service: AuditService,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._fx = fx_service
        self._audit = audit_service

    def list_transactions(
        self,
        company_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[JournalTransaction]:
        """Transactions in date order, optionally within ``[start, end]``."""
        txns = [
            t for t in self.store.load(company_id)
            if (start is None or t.date >= start) and (end is None or t.date <= end)
        ]
        return sorted(txns, key=lambda t: (t.date, t.id))

    def add_transactions(
        self,
        company_id: str,
        transactions: Sequence[JournalTransaction],
        base_currency: str,
        actor: str | None = None,
    ) -> TransactionSaveResult:
        warnings = FxWarnings()
        now = self._clock.now()
        converted: list[JournalTransaction] = []
        for txn in transactions:
            txn = replace(
                txn,
                company_id=company_id,
                created_at=txn.created_at or now,
                created_by=txn.created_by or actor,
            )
            if txn.currency.upper() != base_currency.upper():
                debit_fx = warnings.record(
                    self._fx.convert_to_base(
                        company_id, txn.debit, txn.currency, base_currency, txn.date
                    ),
                    company_id=company_id,
                    currency=txn.currency,
                    on=txn.date,
                )
                credit_fx = self._fx.convert_to_base(
                    company_id, txn.credit, txn.currency, base_currency, txn.date
                )
                txn = replace(
                    txn,
                    debit=debit_fx.converted,
                    credit=credit_fx.converted,
                    currency=base_currency,
                    original_debit=txn.debit,
                    original_credit=txn.credit,
                    fx_rate_to_base=debit_fx.rate,
                )
            converted.append(txn)

        new_ids = [t.id for t in converted]

        def _append(existing: list[JournalTransaction]) -> list[JournalTransaction]:
            taken = {t.id for t in existing}
            seen: set[str] = set()
            for txn_id in new_ids:
                if txn_id in taken or txn_id in seen:
                    raise DuplicateRecordError("transaction", txn_id)
                seen.add(txn_id)
            return existing + converted

        self.store.update(company_id, _append)

        for txn in converted:
            self._audit.record(
                company_id,
                AuditEntity.TRANSACTION,
                txn.id,
                AuditAction.CREATE,
                actor=actor,
                meta={
                    "account_code": txn.account_code,
                    "date": txn.date,
                    "source": txn.source,
                },
            )

        logger.info(
            "transactions_added",
            extra={
                "company_id": company_id,
                "count": len(converted),
                "fx_fallback_used": warnings.fallback_used,
            },
        )
        return TransactionSaveResult(
            transactions=tuple(converted),
            fx_fallback_used=warnings.fallback_used,
            data_gaps=tuple(warnings.gaps),
        )
