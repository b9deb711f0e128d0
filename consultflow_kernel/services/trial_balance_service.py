"""
TrialBalanceService -- trial balance storage, lifecycle and adjustments.

Responsibility:
    Persists trial balances per company, advances their status through the
    lifecycle, and manages adjustments while the trial balance is still
    editable.  Every successful create, status change and adjustment change
    is appended to the company's audit log.

Architecture position:
    Kernel > Services -- imperative shell over
    ``consultflow_kernel.domain.trial_balance``.

Invariants enforced:
    - Persisted entries exclude zero lines and parent-account lines, and
      reference only codes in the company's chart of accounts.
    - Status changes are a serialized compare-and-set against the freshly
      read status: one step forward, or a no-op when already there.
    - Entries and adjustments change only in draft or pending_approval.
    - A rejected mutation writes nothing and records no audit event.
    - Every read-modify-write re-reads the trial balance inside the store
      lock, so an entries update never overwrites a concurrent adjustment.

Failure modes:
    - TrialBalanceNotFoundError, AdjustmentNotFoundError.
    - DuplicateRecordError when a TB or adjustment id already exists.
    - UnknownAccountError for codes outside the chart of accounts.
    - TrialBalanceLockedError for edits after approval.
    - InvalidStatusTransitionError / StatusConflictError on status changes.
    - AdjustmentSidesError when an adjustment is not one-sided.

Audit relevance:
    Audit events are written only after the store write succeeded, so the
    log never records a change that did not happen.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Callable, Sequence

from consultflow_kernel.domain.clock import Clock
from consultflow_kernel.domain.dtos import (
    AuditAction,
    AuditEntity,
    TrialBalance,
    TrialBalanceAdjustment,
    TrialBalanceEntry,
    TrialBalanceStatus,
)
from consultflow_kernel.domain.fx import FxConversion
from consultflow_kernel.domain.trial_balance import (
    AdjustedTotals,
    can_transition,
    compute_adjusted_totals,
    filter_postable_entries,
    is_editable,
    validate_adjustment_sides,
)
from consultflow_kernel.domain.values import ZERO, to_decimal
from consultflow_kernel.exceptions import (
    AdjustmentNotFoundError,
    DuplicateRecordError,
    InvalidStatusTransitionError,
    StatusConflictError,
    TrialBalanceLockedError,
    TrialBalanceNotFoundError,
    UnknownAccountError,
)
from consultflow_kernel.logging_config import LogContext, get_logger
from consultflow_kernel.services.audit_service import AuditService, change
from consultflow_kernel.services.base import BaseService, new_id
from consultflow_kernel.services.coa_service import CoAService
from consultflow_kernel.services.fx_service import FxService
from consultflow_kernel.storage.base import CompanyScopedStore

logger = get_logger("services.trial_balance")


class TrialBalanceService(BaseService[TrialBalance]):
    """
    Contract:
        ``store`` holds every trial balance of a company as one collection.

    Guarantees:
        - Each public mutator performs exactly one store write or none.

    Non-goals:
        Does NOT authorize callers; who may approve or lock is decided
        outside the kernel.
    """

    def __init__(
        self,
        store: CompanyScopedStore[TrialBalance],
        coa_service: CoAService,
        audit_service: AuditService,
        fx_service: FxService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._coa = coa_service
        self._audit = audit_service
        self._fx = fx_service

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def list_tb(self, company_id: str) -> list[TrialBalance]:
        """Trial balances ordered by period end, oldest first."""
        return sorted(
            self.store.load(company_id),
            key=lambda tb: (tb.period_end, tb.period_start, tb.id),
        )

    def get_tb(self, company_id: str, tb_id: str) -> TrialBalance:
        for tb in self.store.load(company_id):
            if tb.id == tb_id:
                return tb
        raise TrialBalanceNotFoundError(company_id, tb_id)

    def latest_tb(
        self,
        company_id: str,
        on_or_before: date | None = None,
    ) -> TrialBalance | None:
        candidates = [
            tb for tb in self.list_tb(company_id)
            if on_or_before is None or tb.period_end <= on_or_before
        ]
        return candidates[-1] if candidates else None

    def compute_adjusted_totals(self, tb: TrialBalance) -> AdjustedTotals:
        return compute_adjusted_totals(tb)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _clean_entries(
        self,
        company_id: str,
        entries: Sequence[TrialBalanceEntry],
    ) -> tuple[TrialBalanceEntry, ...]:
        accounts = self._coa.list_coa(company_id)
        known = {a.account_code for a in accounts}
        parents = self._coa.parent_codes(company_id)
        kept = filter_postable_entries(entries, parents)
        unknown = sorted({e.account_code for e in kept if e.account_code not in known})
        if unknown:
            logger.warning(
                "tb_rejected_unknown_accounts",
                extra={"company_id": company_id, "account_codes": unknown},
            )
            raise UnknownAccountError(company_id, unknown)
        return kept

    @staticmethod
    def _replace_tb(
        tbs: list[TrialBalance],
        company_id: str,
        tb_id: str,
        edit: Callable[[TrialBalance], TrialBalance],
    ) -> list[TrialBalance]:
        for i, tb in enumerate(tbs):
            if tb.id == tb_id:
                tbs[i] = edit(tb)
                return tbs
        raise TrialBalanceNotFoundError(company_id, tb_id)

    @staticmethod
    def _require_editable(tb: TrialBalance, operation: str) -> None:
        if not is_editable(tb.status):
            logger.warning(
                "tb_mutation_rejected_locked",
                extra={
                    "company_id": tb.company_id,
                    "tb_id": tb.id,
                    "status": tb.status.value,
                    "operation": operation,
                },
            )
            raise TrialBalanceLockedError(tb.id, tb.status.value, operation)

    # -----------------------------------------------------------------
    # Trial balances
    # -----------------------------------------------------------------

    def add_tb(
        self,
        company_id: str,
        tb: TrialBalance,
        actor: str | None = None,
    ) -> TrialBalance:
        """
        Persist a new trial balance.

        Zero and parent-account entries are dropped first; remaining codes
        must exist in the chart of accounts.  The write is all or nothing.
        """
        if tb.company_id != company_id:
            tb = replace(tb, company_id=company_id)
        dropped = len(tb.entries)
        tb = replace(
            tb,
            entries=self._clean_entries(company_id, tb.entries),
            uploaded_by=tb.uploaded_by or actor,
            uploaded_at=tb.uploaded_at or self._clock.now(),
        )
        dropped -= len(tb.entries)

        def _insert(tbs: list[TrialBalance]) -> list[TrialBalance]:
            if any(existing.id == tb.id for existing in tbs):
                raise DuplicateRecordError("trial_balance", tb.id)
            return tbs + [tb]

        self.store.update(company_id, _insert)
        totals = compute_adjusted_totals(tb)

        with LogContext.bind(company_id=company_id, tb_id=tb.id):
            self._audit.record(
                company_id,
                AuditEntity.TRIAL_BALANCE,
                tb.id,
                AuditAction.CREATE,
                actor=actor,
                meta={
                    "period_start": tb.period_start,
                    "period_end": tb.period_end,
                    "status": tb.status,
                    "entry_count": len(tb.entries),
                },
            )
            logger.info(
                "tb_added",
                extra={
                    "entry_count": len(tb.entries),
                    "dropped_entries": dropped,
                    "is_balanced": totals.is_balanced,
                },
            )
        return tb

    def update_tb_status(
        self,
        company_id: str,
        tb_id: str,
        status: TrialBalanceStatus,
        actor: str | None = None,
        expected_status: TrialBalanceStatus | None = None,
    ) -> TrialBalance:
        """
        Advance the status by exactly one step.

        The check runs against the status read inside the store lock.
        Requesting the status the TB already has returns it unchanged and
        records no audit event.

        Raises:
            StatusConflictError: ``expected_status`` no longer matches.
            InvalidStatusTransitionError: ``status`` is not the next step.
        """
        status = TrialBalanceStatus(status)
        outcome: dict[str, TrialBalanceStatus] = {}

        def _advance(tb: TrialBalance) -> TrialBalance:
            current = tb.status
            outcome["from"] = current
            if current == status:
                return tb
            if expected_status is not None and current != expected_status:
                raise StatusConflictError(tb.id, expected_status.value, current.value)
            if not can_transition(current, status):
                raise InvalidStatusTransitionError(tb.id, current.value, status.value)
            return replace(tb, status=status)

        try:
            tbs = self.store.update(
                company_id,
                lambda tbs: self._replace_tb(tbs, company_id, tb_id, _advance),
            )
        except (StatusConflictError, InvalidStatusTransitionError):
            logger.warning(
                "tb_status_change_rejected",
                extra={
                    "company_id": company_id,
                    "tb_id": tb_id,
                    "requested": status.value,
                },
                exc_info=True,
            )
            raise

        updated = next(tb for tb in tbs if tb.id == tb_id)
        previous = outcome["from"]
        if previous == status:
            logger.info(
                "tb_status_unchanged",
                extra={"company_id": company_id, "tb_id": tb_id, "status": status.value},
            )
            return updated
        self._audit.record(
            company_id,
            AuditEntity.TRIAL_BALANCE,
            tb_id,
            AuditAction.STATUS_CHANGE,
            actor=actor,
            changes={"status": change(previous, updated.status)},
        )
        logger.info(
            "tb_status_changed",
            extra={
                "company_id": company_id,
                "tb_id": tb_id,
                "from_status": previous.value,
                "to_status": updated.status.value,
            },
        )
        return updated

    def update_tb_entries(
        self,
        company_id: str,
        tb_id: str,
        entries: Sequence[TrialBalanceEntry],
        actor: str | None = None,
    ) -> TrialBalance:
        """Replace the entries of an editable TB, keeping its adjustments."""
        cleaned = self._clean_entries(company_id, entries)
        counts: dict[str, int] = {}

        def _edit(tb: TrialBalance) -> TrialBalance:
            self._require_editable(tb, "update entries")
            counts["before"] = len(tb.entries)
            return replace(tb, entries=cleaned)

        tbs = self.store.update(
            company_id,
            lambda tbs: self._replace_tb(tbs, company_id, tb_id, _edit),
        )
        updated = next(tb for tb in tbs if tb.id == tb_id)
        self._audit.record(
            company_id,
            AuditEntity.TRIAL_BALANCE,
            tb_id,
            AuditAction.UPDATE,
            actor=actor,
            changes={"entry_count": change(counts["before"], len(cleaned))},
        )
        logger.info(
            "tb_entries_updated",
            extra={"company_id": company_id, "tb_id": tb_id, "entry_count": len(cleaned)},
        )
        return updated

    # -----------------------------------------------------------------
    # Adjustments
    # -----------------------------------------------------------------

    def _build_adjustment(
        self,
        tb: TrialBalance,
        adjustment_id: str,
        account_code: str,
        debit: Decimal,
        credit: Decimal,
        reason: str,
        actor: str,
        currency: str | None,
    ) -> TrialBalanceAdjustment:
        validate_adjustment_sides(account_code, debit, credit)
        known = {a.account_code for a in self._coa.list_coa(tb.company_id)}
        if account_code not in known:
            raise UnknownAccountError(tb.company_id, [account_code])

        adjustment = TrialBalanceAdjustment(
            id=adjustment_id,
            tb_id=tb.id,
            account_code=account_code,
            debit=debit,
            credit=credit,
            reason=reason,
            created_by=actor,
            created_at=self._clock.now(),
            currency=currency,
        )
        if (
            currency is None
            or tb.currency is None
            or self._fx is None
            or currency.upper() == tb.currency.upper()
        ):
            return adjustment

        debit_fx = self._fx.convert_to_base(
            tb.company_id, debit, currency, tb.currency, tb.period_end
        )
        credit_fx = self._fx.convert_to_base(
            tb.company_id, credit, currency, tb.currency, tb.period_end
        )
        return _with_conversion(adjustment, debit_fx, credit_fx)

    def add_tb_adjustment(
        self,
        company_id: str,
        tb_id: str,
        account_code: str,
        debit: Decimal | int | str,
        credit: Decimal | int | str,
        reason: str,
        actor: str,
        currency: str | None = None,
        adjustment_id: str | None = None,
    ) -> TrialBalanceAdjustment:
        """
        Add an adjustment to a draft or pending-approval TB.

        Raises:
            TrialBalanceLockedError: TB is approved or locked; nothing is
                written and no audit event recorded.
            AdjustmentSidesError: Not exactly one positive side.
        """
        debit, credit = to_decimal(debit), to_decimal(credit)
        adjustment_id = adjustment_id or new_id()
        created: list[TrialBalanceAdjustment] = []

        def _edit(tb: TrialBalance) -> TrialBalance:
            self._require_editable(tb, "add adjustment")
            if tb.find_adjustment(adjustment_id) is not None:
                raise DuplicateRecordError("adjustment", adjustment_id)
            adjustment = self._build_adjustment(
                tb, adjustment_id, account_code, debit, credit, reason, actor, currency,
            )
            created.append(adjustment)
            return replace(tb, adjustments=tb.adjustments + (adjustment,))

        self.store.update(
            company_id,
            lambda tbs: self._replace_tb(tbs, company_id, tb_id, _edit),
        )
        adjustment = created[0]
        self._audit.record(
            company_id,
            AuditEntity.ADJUSTMENT,
            adjustment.id,
            AuditAction.CREATE,
            actor=actor,
            changes={
                "debit": change(None, adjustment.debit),
                "credit": change(None, adjustment.credit),
            },
            meta={
                "tb_id": tb_id,
                "account_code": account_code,
                "reason": reason,
                "fx_fallback_used": adjustment.fx_fallback_used,
            },
        )
        logger.info(
            "adjustment_added",
            extra={
                "company_id": company_id,
                "tb_id": tb_id,
                "adjustment_id": adjustment.id,
                "account_code": account_code,
                "fx_fallback_used": adjustment.fx_fallback_used,
            },
        )
        return adjustment

    def replace_tb_adjustment(
        self,
        company_id: str,
        tb_id: str,
        adjustment_id: str,
        account_code: str,
        debit: Decimal | int | str,
        credit: Decimal | int | str,
        reason: str,
        actor: str,
        currency: str | None = None,
    ) -> TrialBalanceAdjustment:
        """Edit an adjustment: the old one is removed and a new one inserted with the same id."""
        debit, credit = to_decimal(debit), to_decimal(credit)
        swapped: dict[str, TrialBalanceAdjustment] = {}

        def _edit(tb: TrialBalance) -> TrialBalance:
            self._require_editable(tb, "edit adjustment")
            old = tb.find_adjustment(adjustment_id)
            if old is None:
                raise AdjustmentNotFoundError(adjustment_id)
            new = self._build_adjustment(
                tb, adjustment_id, account_code, debit, credit, reason, actor, currency,
            )
            swapped["old"], swapped["new"] = old, new
            kept = tuple(a for a in tb.adjustments if a.id != adjustment_id)
            return replace(tb, adjustments=kept + (new,))

        self.store.update(
            company_id,
            lambda tbs: self._replace_tb(tbs, company_id, tb_id, _edit),
        )
        old, new = swapped["old"], swapped["new"]
        changes = {
            name: change(getattr(old, name), getattr(new, name))
            for name in ("account_code", "debit", "credit", "reason", "currency")
            if getattr(old, name) != getattr(new, name)
        }
        self._audit.record(
            company_id,
            AuditEntity.ADJUSTMENT,
            adjustment_id,
            AuditAction.UPDATE,
            actor=actor,
            changes=changes,
            meta={"tb_id": tb_id, "fx_fallback_used": new.fx_fallback_used},
        )
        logger.info(
            "adjustment_replaced",
            extra={
                "company_id": company_id,
                "tb_id": tb_id,
                "adjustment_id": adjustment_id,
                "fx_fallback_used": new.fx_fallback_used,
            },
        )
        return new

    def delete_tb_adjustment(
        self,
        company_id: str,
        tb_id: str,
        adjustment_id: str,
        actor: str | None = None,
    ) -> TrialBalanceAdjustment:
        """
        Remove an adjustment from a draft or pending-approval TB.

        Raises:
            TrialBalanceLockedError: TB is approved or locked.
            AdjustmentNotFoundError: No adjustment with that id.
        """
        removed: list[TrialBalanceAdjustment] = []

        def _edit(tb: TrialBalance) -> TrialBalance:
            self._require_editable(tb, "delete adjustment")
            target = tb.find_adjustment(adjustment_id)
            if target is None:
                raise AdjustmentNotFoundError(adjustment_id)
            removed.append(target)
            return replace(
                tb,
                adjustments=tuple(a for a in tb.adjustments if a.id != adjustment_id),
            )

        self.store.update(
            company_id,
            lambda tbs: self._replace_tb(tbs, company_id, tb_id, _edit),
        )
        target = removed[0]
        self._audit.record(
            company_id,
            AuditEntity.ADJUSTMENT,
            adjustment_id,
            AuditAction.DELETE,
            actor=actor,
            changes={
                "debit": change(target.debit, None),
                "credit": change(target.credit, None),
            },
            meta={"tb_id": tb_id, "account_code": target.account_code},
        )
        logger.info(
            "adjustment_deleted",
            extra={"company_id": company_id, "tb_id": tb_id, "adjustment_id": adjustment_id},
        )
        return target


def _with_conversion(
    adjustment: TrialBalanceAdjustment,
    debit_fx: FxConversion,
    credit_fx: FxConversion,
) -> TrialBalanceAdjustment:
    return replace(
        adjustment,
        debit=debit_fx.converted if adjustment.debit > ZERO else ZERO,
        credit=credit_fx.converted if adjustment.credit > ZERO else ZERO,
        original_debit=adjustment.debit,
        original_credit=adjustment.credit,
        fx_rate_to_base=debit_fx.rate,
        fx_fallback_used=debit_fx.fallback_used or credit_fx.fallback_used,
    )
