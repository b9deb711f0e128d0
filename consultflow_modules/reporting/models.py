"""
Financial Reporting Domain Models (``consultflow_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for statement outputs: profit and loss,
balance sheet and cash flow.  Each statement records whether it was derived
from trial balances or estimated from the monthly series.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Produced by
``consultflow_modules.reporting.statements`` and embedded in the
consolidation report bundle.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Balance sheet liability lines carry negative amounts (credit side), the
  totals on the statement itself are positive magnitudes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from consultflow_kernel.domain.values import ZERO


class StatementSource(str, Enum):
    """Where a statement's figures came from."""

    TRIAL_BALANCE = "trial_balance"
    HEURISTIC = "heuristic"


# =========================================================================
# Profit and Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLoss:
    """
    Profit and loss derived from one trial balance.

    gross_profit = revenue - cogs; net_income = gross_profit - opex.
    """

    revenue: Decimal = ZERO
    cogs: Decimal = ZERO
    opex: Decimal = ZERO
    gross_profit: Decimal = ZERO
    net_income: Decimal = ZERO


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """A single keyed line of a statement."""

    key: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    """Balance sheet as of one date."""

    as_of: date | None
    lines: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    equity: Decimal
    source: StatementSource

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities + self.equity

    def amount(self, key: str) -> Decimal:
        for line in self.lines:
            if line.key == key:
                return line.amount
        raise KeyError(key)


# =========================================================================
# Cash Flow
# =========================================================================


@dataclass(frozen=True)
class CashFlow:
    """
    Cash flow over a period (indirect method).

    net_change = operating + investing + financing.
    """

    from_date: date | None
    to_date: date | None
    net_income: Decimal
    operating: Decimal
    investing: Decimal
    financing: Decimal
    net_change: Decimal
    lines: tuple[StatementLine, ...]
    source: StatementSource
