"""
Upload service: parsed rows -> mapped, converted, persisted trial balance.

Orchestrates the row DTOs, the mapping engine and the kernel services.
Uses structured logging (LogContext, get_logger("ingestion.*")).

Save flow for a trial balance:

1. Validate rows into ``RawAccountRow`` (all row errors are reported).
2. Resolve source codes (manual override > exact > learned > fuzzy).
   Any row with an amount left unresolved rejects the save before anything
   is written.
3. Convert foreign-currency rows into the TB currency at the rate recorded
   for ``period_end``; a missing rate falls back to 1.0 and is flagged.
4. Persist through ``TrialBalanceService.add_tb`` (zero and parent lines
   dropped, unknown codes rejected, single atomic write).
5. Learn the non-exact mappings, only after the save succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Mapping, Sequence

from consultflow_kernel.domain.clock import Clock, SystemClock
from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.dtos import (
    JournalTransaction,
    TransactionSource,
    TrialBalance,
    TrialBalanceEntry,
    TrialBalanceStatus,
)
from consultflow_kernel.domain.fx import DataGap, FxWarnings
from consultflow_kernel.exceptions import UnmappedAccountError
from consultflow_kernel.logging_config import LogContext, get_logger
from consultflow_kernel.services.base import new_id
from consultflow_kernel.services.coa_service import CoAService
from consultflow_kernel.services.company_service import CompanyService
from consultflow_kernel.services.fx_service import FxService
from consultflow_kernel.services.mapping_service import MappingService
from consultflow_kernel.services.trial_balance_service import TrialBalanceService
from consultflow_kernel.services.transaction_service import (
    TransactionSaveResult,
    TransactionService,
)

from consultflow_ingestion.domain.types import (
    MappingProposal,
    RawAccountRow,
    RawTransactionRow,
    ResolutionMethod,
    parse_account_rows,
    parse_transaction_rows,
)
from consultflow_ingestion.mapping.engine import propose_mapping

logger = get_logger("ingestion.upload")


@dataclass(frozen=True)
class TrialBalanceSaveResult:
    trial_balance: TrialBalance
    fx_fallback_used: bool
    mapping: dict[str, str]
    learned: dict[str, str]
    data_gaps: tuple[DataGap, ...] = ()


class UploadService:
    """
    Contract:
        Callers pass rows already parsed from CSV/Excel as dicts or
        ``RawAccountRow`` / ``RawTransactionRow`` instances.

    Non-goals:
        No file reading; no UI prompting.  Unresolved codes are returned by
        ``propose_mapping`` for the caller to present.
    """

    def __init__(
        self,
        coa_service: CoAService,
        mapping_service: MappingService,
        fx_service: FxService,
        tb_service: TrialBalanceService,
        company_service: CompanyService | None = None,
        transaction_service: TransactionService | None = None,
        clock: Clock | None = None,
    ):
        self._coa = coa_service
        self._mappings = mapping_service
        self._fx = fx_service
        self._tbs = tb_service
        self._companies = company_service
        self._transactions = transaction_service
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    @staticmethod
    def _account_rows(rows: Sequence[RawAccountRow | Mapping[str, Any]]) -> list[RawAccountRow]:
        if all(isinstance(r, RawAccountRow) for r in rows):
            return list(rows)
        dicts = [r for r in rows if not isinstance(r, RawAccountRow)]
        result = parse_account_rows(dicts)
        if not result.ok:
            logger.warning(
                "upload_rows_invalid",
                extra={"error_count": len(result.errors)},
            )
            raise result.errors[0]
        typed = iter(result.rows)
        return [r if isinstance(r, RawAccountRow) else next(typed) for r in rows]

    def _base_currency(self, company_id: str, currency: str | None) -> str | None:
        if currency:
            return CurrencyRegistry.normalize(currency)
        if self._companies is not None:
            company = self._companies.find_company(company_id)
            if company is not None:
                return company.currency
        return None

    # -----------------------------------------------------------------
    # Trial balances
    # -----------------------------------------------------------------

    def propose_mapping(
        self,
        company_id: str,
        rows: Sequence[RawAccountRow | Mapping[str, Any]],
        overrides: Mapping[str, str] | None = None,
    ) -> MappingProposal:
        """Resolve every source code; unresolved codes need a manual pick."""
        parsed = self._account_rows(rows)
        proposal = propose_mapping(
            parsed,
            self._coa.list_coa(company_id),
            self._mappings.get_saved_mapping(company_id),
            overrides,
        )
        logger.info(
            "mapping_proposed",
            extra={
                "company_id": company_id,
                "source_codes": len(proposal.resolutions),
                "unresolved": len(proposal.unresolved),
            },
        )
        return proposal

    def save_trial_balance(
        self,
        company_id: str,
        rows: Sequence[RawAccountRow | Mapping[str, Any]],
        period_start: date,
        period_end: date,
        overrides: Mapping[str, str] | None = None,
        currency: str | None = None,
        actor: str | None = None,
        tb_id: str | None = None,
        notes: str | None = None,
        submit_for_approval: bool = False,
    ) -> TrialBalanceSaveResult:
        """
        Map, convert and persist an uploaded trial balance.

        Raises:
            RowValidationError: A row is malformed.
            UnmappedAccountError: A row with an amount has no target account.
            UnknownAccountError: A target code is missing from the CoA.
        """
        with LogContext.bind(company_id=company_id, actor_id=actor):
            parsed = self._account_rows(rows)
            proposal = self.propose_mapping(company_id, parsed, overrides)
            if proposal.unresolved:
                logger.warning(
                    "tb_save_rejected_unmapped",
                    extra={"unresolved_codes": list(proposal.unresolved)},
                )
                raise UnmappedAccountError(company_id, list(proposal.unresolved))

            mapping = proposal.mapping
            base = self._base_currency(company_id, currency)
            warnings = FxWarnings()
            entries: list[TrialBalanceEntry] = []
            for row in parsed:
                target = mapping.get(row.account_code)
                if target is None:
                    # all-zero rows may stay unmapped; they are dropped anyway
                    continue
                entry = TrialBalanceEntry(
                    account_code=target,
                    debit=row.debit,
                    credit=row.credit,
                    currency=row.currency,
                    name=row.name,
                )
                if base and row.currency and row.currency != base:
                    debit_fx = warnings.record(
                        self._fx.convert_to_base(
                            company_id, row.debit, row.currency, base, period_end
                        ),
                        company_id=company_id,
                        currency=row.currency,
                        on=period_end,
                    )
                    credit_fx = self._fx.convert_to_base(
                        company_id, row.credit, row.currency, base, period_end
                    )
                    entry = replace(
                        entry,
                        debit=debit_fx.converted,
                        credit=credit_fx.converted,
                        original_debit=row.debit,
                        original_credit=row.credit,
                        fx_rate_to_base=debit_fx.rate,
                    )
                entries.append(entry)

            tb = TrialBalance(
                id=tb_id or new_id(),
                company_id=company_id,
                period_start=period_start,
                period_end=period_end,
                entries=tuple(entries),
                status=TrialBalanceStatus.DRAFT,
                currency=base,
                uploaded_by=actor,
                uploaded_at=self._clock.now(),
                notes=notes,
            )
            saved = self._tbs.add_tb(company_id, tb, actor=actor)
            if submit_for_approval:
                saved = self._tbs.update_tb_status(
                    company_id, saved.id, TrialBalanceStatus.PENDING_APPROVAL, actor=actor,
                )

            learned = {
                r.source_code: r.target_code
                for r in proposal.resolutions
                if r.resolved and r.method != ResolutionMethod.EXACT
            }
            if learned:
                self._mappings.save_mapping(company_id, learned)

            if warnings.fallback_used:
                logger.warning(
                    "tb_saved_with_fx_fallback",
                    extra={
                        "tb_id": saved.id,
                        "missing_currencies": sorted({g.currency for g in warnings.gaps}),
                    },
                )
            logger.info(
                "tb_upload_saved",
                extra={
                    "tb_id": saved.id,
                    "row_count": len(parsed),
                    "learned_count": len(learned),
                    "fx_fallback_used": warnings.fallback_used,
                },
            )
            return TrialBalanceSaveResult(
                trial_balance=saved,
                fx_fallback_used=warnings.fallback_used,
                mapping=mapping,
                learned=learned,
                data_gaps=tuple(warnings.gaps),
            )

    # -----------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------

    def import_transactions(
        self,
        company_id: str,
        rows: Sequence[RawTransactionRow | Mapping[str, Any]],
        base_currency: str | None = None,
        actor: str | None = None,
        source: TransactionSource = TransactionSource.UPLOAD,
    ) -> TransactionSaveResult:
        """
        Persist uploaded transactions, converting foreign lines per their date.

        Account codes go through the company's learned mapping; codes with
        no learned mapping are kept as uploaded.
        """
        if self._transactions is None:
            raise RuntimeError("UploadService was built without a TransactionService")
        base = self._base_currency(company_id, base_currency)
        if base is None:
            raise ValueError(f"No base currency known for company {company_id}")

        if all(isinstance(r, RawTransactionRow) for r in rows):
            parsed = list(rows)
        else:
            result = parse_transaction_rows(
                [r for r in rows if not isinstance(r, RawTransactionRow)]
            )
            if not result.ok:
                raise result.errors[0]
            typed = iter(result.rows)
            parsed = [r if isinstance(r, RawTransactionRow) else next(typed) for r in rows]

        learned = self._mappings.get_saved_mapping(company_id)
        txns = [
            JournalTransaction(
                id=new_id(),
                company_id=company_id,
                date=row.date,
                account_code=learned.get(row.account_code, row.account_code),
                debit=row.debit,
                credit=row.credit,
                currency=row.currency or base,
                source=source,
                description=row.description,
                reference=row.reference,
                created_by=actor,
            )
            for row in parsed
        ]
        with LogContext.bind(company_id=company_id, actor_id=actor):
            return self._transactions.add_transactions(company_id, txns, base, actor=actor)
