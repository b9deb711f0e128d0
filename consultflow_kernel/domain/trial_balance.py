"""
Trial balance -- lifecycle rules, entry filtering and adjusted totals.

Responsibility:
    Pure rules for the trial balance lifecycle: the transition table, which
    states accept adjustments, which uploaded entries are persisted, and how
    original and adjustment amounts combine into net totals.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The
    ``TrialBalanceService`` wraps these rules with locking, persistence and
    audit logging.

Invariants enforced:
    - Status moves forward one step at a time:
      draft -> pending_approval -> approved -> locked.
    - Entries and adjustments change only in draft or pending_approval.
    - Zero entries and parent-account entries are never persisted.
    - Net debit/credit equals original plus adjustments; the balance check
      uses the single ``BALANCE_TOLERANCE``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from consultflow_kernel.domain.dtos import (
    TrialBalance,
    TrialBalanceEntry,
    TrialBalanceStatus,
)
from consultflow_kernel.domain.values import ZERO, is_balanced
from consultflow_kernel.exceptions import AdjustmentSidesError

_NEXT_STATUS: dict[TrialBalanceStatus, TrialBalanceStatus] = {
    TrialBalanceStatus.DRAFT: TrialBalanceStatus.PENDING_APPROVAL,
    TrialBalanceStatus.PENDING_APPROVAL: TrialBalanceStatus.APPROVED,
    TrialBalanceStatus.APPROVED: TrialBalanceStatus.LOCKED,
}

EDITABLE_STATUSES: frozenset[TrialBalanceStatus] = frozenset({
    TrialBalanceStatus.DRAFT,
    TrialBalanceStatus.PENDING_APPROVAL,
})


def next_status(status: TrialBalanceStatus) -> TrialBalanceStatus | None:
    """The only status reachable from ``status``; None once locked."""
    return _NEXT_STATUS.get(status)


def can_transition(current: TrialBalanceStatus, target: TrialBalanceStatus) -> bool:
    return _NEXT_STATUS.get(current) == target


def is_editable(status: TrialBalanceStatus) -> bool:
    """Entries and adjustments may change only before approval."""
    return status in EDITABLE_STATUSES


def filter_postable_entries(
    entries: Iterable[TrialBalanceEntry],
    parent_codes: frozenset[str] | set[str],
) -> tuple[TrialBalanceEntry, ...]:
    """
    Keep entries that carry an amount on a leaf account.

    Order of surviving entries is preserved.
    """
    return tuple(
        e for e in entries
        if not e.is_zero and e.account_code not in parent_codes
    )


def validate_adjustment_sides(account_code: str, debit: Decimal, credit: Decimal) -> None:
    """
    Require exactly one strictly positive side and no negative amount.

    Raises:
        AdjustmentSidesError: Otherwise.
    """
    if debit < ZERO or credit < ZERO or (debit > ZERO) == (credit > ZERO):
        raise AdjustmentSidesError(account_code, str(debit), str(credit))


@dataclass(frozen=True)
class AdjustedTotals:
    original_debit: Decimal
    original_credit: Decimal
    adjustment_debit: Decimal
    adjustment_credit: Decimal
    net_debit: Decimal
    net_credit: Decimal
    is_balanced: bool

    @property
    def difference(self) -> Decimal:
        return self.net_debit - self.net_credit


def compute_adjusted_totals(tb: TrialBalance) -> AdjustedTotals:
    """Sum entries and adjustments; balanced within ``BALANCE_TOLERANCE``."""
    original_debit = sum((e.debit for e in tb.entries), ZERO)
    original_credit = sum((e.credit for e in tb.entries), ZERO)
    adjustment_debit = sum((a.debit for a in tb.adjustments), ZERO)
    adjustment_credit = sum((a.credit for a in tb.adjustments), ZERO)
    net_debit = original_debit + adjustment_debit
    net_credit = original_credit + adjustment_credit
    return AdjustedTotals(
        original_debit=original_debit,
        original_credit=original_credit,
        adjustment_debit=adjustment_debit,
        adjustment_credit=adjustment_credit,
        net_debit=net_debit,
        net_credit=net_credit,
        is_balanced=is_balanced(net_debit, net_credit),
    )


def account_balances(
    tb: TrialBalance,
    include_adjustments: bool = True,
) -> dict[str, Decimal]:
    """Debit-positive balance per account code."""
    balances: dict[str, Decimal] = {}
    lines: Sequence = tb.entries + (tb.adjustments if include_adjustments else ())
    for line in lines:
        balances[line.account_code] = balances.get(line.account_code, ZERO) + line.balance
    return balances
