"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable records that flow between the ingestion pipeline,
    the kernel services and the reporting layer: accounts, trial balances and
    their adjustments, exchange rates, journal transactions, companies and
    audit events.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Stores persist these
    records through codecs in ``consultflow_kernel.storage.codecs``.

Invariants enforced:
    - Monetary fields are ``Decimal``; never float.
    - Records are frozen.  Changes are made with ``dataclasses.replace`` and
      a store write of the whole company collection.
    - An adjustment has exactly one strictly positive side (checked by
      ``trial_balance.validate_adjustment_sides`` before persistence).

Failure modes:
    - ValueError on a TrialBalance whose period_end precedes period_start.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from consultflow_kernel.domain.values import ZERO


class AccountType(str, Enum):
    """
    Top-level classification of a chart-of-accounts line.

    Values match the labels consultants use in uploaded charts.
    """

    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class TrialBalanceStatus(str, Enum):
    """
    Lifecycle state of a trial balance.

    Contract:
        DRAFT -> PENDING_APPROVAL -> APPROVED -> LOCKED, forward only.
        Adjustments may be added or removed only in DRAFT or PENDING_APPROVAL.
    """

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    LOCKED = "locked"


class TransactionSource(str, Enum):
    UPLOAD = "upload"
    MANUAL = "manual"
    ADJUSTMENT = "adjustment"
    INTEGRATION = "integration"


class AuditEntity(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    ADJUSTMENT = "adjustment"
    TRANSACTION = "transaction"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"


@dataclass(frozen=True)
class Company:
    """A reporting entity with its own base currency."""

    id: str
    name: str
    currency: str
    is_active: bool = True


@dataclass(frozen=True)
class Account:
    """
    One line of a company's chart of accounts.

    ``parent_account_id`` refers to another account's ``id`` in the same
    company.  Whether an account is a parent is derived from the set, never
    stored.
    """

    id: str
    company_id: str
    account_code: str
    account_name: str
    account_type: AccountType
    parent_account_id: str | None = None
    currency: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class TrialBalanceEntry:
    """
    Debit/credit balance of one account in a trial balance.

    When the entry was converted from a foreign currency, ``original_*``
    hold the pre-conversion amounts and ``fx_rate_to_base`` the rate used.
    """

    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str | None = None
    name: str | None = None
    original_debit: Decimal | None = None
    original_credit: Decimal | None = None
    fx_rate_to_base: Decimal | None = None

    @property
    def balance(self) -> Decimal:
        """Signed debit-positive balance."""
        return self.debit - self.credit

    @property
    def is_zero(self) -> bool:
        return self.debit == ZERO and self.credit == ZERO


@dataclass(frozen=True)
class TrialBalanceAdjustment:
    """A manual correction layered on top of an uploaded trial balance."""

    id: str
    tb_id: str
    account_code: str
    debit: Decimal
    credit: Decimal
    reason: str
    created_by: str
    created_at: datetime
    currency: str | None = None
    original_debit: Decimal | None = None
    original_credit: Decimal | None = None
    fx_rate_to_base: Decimal | None = None
    # True when no rate was on file and 1.0 was used
    fx_fallback_used: bool = False

    @property
    def balance(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class TrialBalance:
    """
    A company's account balances for one reporting period.

    Guarantees:
        - ``entries`` never contain zero lines or parent-account lines once
          persisted through ``TrialBalanceService.add_tb``.
    """

    id: str
    company_id: str
    period_start: date
    period_end: date
    entries: tuple[TrialBalanceEntry, ...] = ()
    status: TrialBalanceStatus = TrialBalanceStatus.DRAFT
    adjustments: tuple[TrialBalanceAdjustment, ...] = ()
    currency: str | None = None
    uploaded_by: str | None = None
    uploaded_at: datetime | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.period_end < self.period_start:
            raise ValueError(
                f"Trial balance {self.id}: period_end {self.period_end} "
                f"precedes period_start {self.period_start}"
            )
        # Accept lists from callers but store tuples
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))
        if not isinstance(self.adjustments, tuple):
            object.__setattr__(self, "adjustments", tuple(self.adjustments))

    def find_adjustment(self, adjustment_id: str) -> TrialBalanceAdjustment | None:
        for adj in self.adjustments:
            if adj.id == adjustment_id:
                return adj
        return None


@dataclass(frozen=True)
class ExchangeRate:
    """
    Conversion rate recorded by a company for one currency and date.

    ``rate`` is the number of ``base`` units per one unit of ``target``:
    ``amount_in_base = amount_in_target * rate``.
    """

    id: str
    base: str
    target: str
    date: date
    rate: Decimal
    created_at: datetime | None = None
    source: str | None = None

    @staticmethod
    def default_id(base: str, target: str, on: date) -> str:
        return f"{base}-{target}-{on.isoformat()}"


@dataclass(frozen=True)
class JournalTransaction:
    """A single ledger line imported or keyed for a company."""

    id: str
    company_id: str
    date: date
    account_code: str
    debit: Decimal
    credit: Decimal
    currency: str
    source: TransactionSource = TransactionSource.UPLOAD
    description: str | None = None
    reference: str | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    original_debit: Decimal | None = None
    original_credit: Decimal | None = None
    fx_rate_to_base: Decimal | None = None


@dataclass(frozen=True)
class AuditEvent:
    """
    One entry of a company's append-only audit log.

    ``changes`` maps a field name to ``{"from": old, "to": new}``.  ``hash``
    chains over ``prev_hash`` so any later edit to the log is detectable.
    """

    id: str
    company_id: str
    seq: int
    entity: AuditEntity
    entity_id: str
    action: AuditAction
    timestamp: datetime
    actor: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    payload_hash: str = ""
    prev_hash: str | None = None
    hash: str = ""


@dataclass(frozen=True)
class LearnedMapping:
    """A source account code a company has mapped onto one of its CoA codes."""

    source_code: str
    account_code: str
