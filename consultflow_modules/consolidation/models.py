"""
Consolidation Domain Models (``consultflow_modules.consolidation.models``).

Responsibility
--------------
Frozen dataclass value objects for consolidated reporting: monthly series
points, month-bucketed consolidation adjustments, insights, KPIs,
elimination entries, the report query and the report bundle.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ConsolidationService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Series points are keyed by the first day of their month.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence

from consultflow_kernel.domain.dtos import Company
from consultflow_kernel.domain.fx import DataGap
from consultflow_kernel.domain.values import ZERO
from consultflow_modules.reporting.models import BalanceSheet, CashFlow


class AdjustmentField(str, Enum):
    """Series figure a consolidation adjustment changes."""

    REVENUE = "revenue"
    COGS = "cogs"
    EXPENSES = "expenses"


class InsightSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def month_start(on: date) -> date:
    return on.replace(day=1)


def month_key(on: date) -> str:
    """``YYYY-MM`` bucket key of a date."""
    return on.strftime("%Y-%m")


# =========================================================================
# Series
# =========================================================================


@dataclass(frozen=True)
class SeriesPoint:
    """One company's (or the merged) monthly figures."""

    date: date
    revenue: Decimal = ZERO
    cogs: Decimal = ZERO
    expenses: Decimal = ZERO
    cash: Decimal = ZERO

    @property
    def gross_profit(self) -> Decimal:
        return self.revenue - self.cogs

    @property
    def net_income(self) -> Decimal:
        return self.revenue - self.cogs - self.expenses

    def plus(self, other: SeriesPoint) -> SeriesPoint:
        return replace(
            self,
            revenue=self.revenue + other.revenue,
            cogs=self.cogs + other.cogs,
            expenses=self.expenses + other.expenses,
            cash=self.cash + other.cash,
        )

    def adjusted(self, field_name: AdjustmentField, delta: Decimal) -> SeriesPoint:
        current = getattr(self, field_name.value)
        return replace(self, **{field_name.value: current + delta})


# =========================================================================
# Adjustments and insights
# =========================================================================


@dataclass(frozen=True)
class ConsolidationAdjustment:
    """
    A signed change to one series figure in one month.

    Applies to a report when any of ``companies`` is selected.  Only the
    month of ``date`` matters.
    """

    id: str
    companies: tuple[str, ...]
    date: date
    field: AdjustmentField
    delta: Decimal
    note: str | None = None
    created_at: datetime | None = None

    def targets_any(self, company_ids: Sequence[str]) -> bool:
        return any(c in company_ids for c in self.companies)

    @property
    def cash_effect(self) -> Decimal:
        """Change in net income (and so in running cash) this adjustment causes."""
        return self.delta if self.field == AdjustmentField.REVENUE else -self.delta


@dataclass(frozen=True)
class Insight:
    """Advisory note shown with reports; ``company_id`` None means global."""

    id: str
    title: str
    detail: str
    severity: InsightSeverity = InsightSeverity.LOW
    company_id: str | None = None
    created_at: datetime | None = None
    is_active: bool = True


# =========================================================================
# Report output
# =========================================================================


@dataclass(frozen=True)
class KPI:
    key: str
    label: str
    value: Decimal
    delta: Decimal


@dataclass(frozen=True)
class EliminationEntry:
    """A synthetic entry removing inter-company double counting."""

    key: str
    description: str
    debit_account: str
    credit_account: str
    amount: Decimal


@dataclass(frozen=True)
class EliminationSummary:
    entries: tuple[EliminationEntry, ...]
    revenue: Decimal
    net_income: Decimal
    total_eliminated: Decimal
    net_income_after_eliminations: Decimal


@dataclass(frozen=True)
class ReportQuery:
    """
    Report selection.

    ``company`` is a comma-separated id string or a sequence of ids; empty
    selects every active company.  ``range`` is ``all``, a number of days
    (``"90"`` or ``"90d"``), a number of months (``"6m"``) or ``ytd``;
    explicit ``from_date``/``to_date`` win over ``range``.
    """

    company: str | Sequence[str] | None = None
    currency: str | None = None
    range: str | None = None
    from_date: date | None = None
    to_date: date | None = None

    def company_ids(self) -> list[str]:
        if not self.company:
            return []
        parts = self.company.split(",") if isinstance(self.company, str) else self.company
        ids: list[str] = []
        for part in parts:
            part = part.strip()
            if part and part not in ids:
                ids.append(part)
        return ids


@dataclass(frozen=True)
class ReportBundle:
    """Everything a consolidated report view needs, in one currency."""

    companies: tuple[Company, ...]
    currency: str
    kpis: tuple[KPI, ...]
    series: tuple[SeriesPoint, ...]
    balance_sheet: BalanceSheet
    cashflow: CashFlow
    insights: tuple[Insight, ...] = ()
    eliminations: EliminationSummary | None = None
    fx_fallback_used: bool = False
    data_gaps: tuple[DataGap, ...] = field(default=())

    def kpi(self, key: str) -> KPI:
        for item in self.kpis:
            if item.key == key:
                return item
        raise KeyError(key)
