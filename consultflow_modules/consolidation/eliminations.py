"""
Synthetic elimination entries for consolidated views.

Inter-company flows are not identified from matched transactions; each
entry is a fixed share of total consolidated revenue (``EliminationRates``).
Pure, ZERO I/O.
"""

from __future__ import annotations

from decimal import Decimal

from consultflow_kernel.domain.values import ZERO, round_whole
from consultflow_modules.consolidation.models import EliminationEntry, EliminationSummary
from consultflow_modules.reporting.config import EliminationRates


def build_eliminations(
    revenue: Decimal,
    net_income: Decimal,
    rates: EliminationRates,
) -> EliminationSummary:
    """
    Elimination entries sized from consolidated ``revenue``.

    Amounts are absolute values rounded to whole units.  Net income after
    eliminations subtracts every entry.
    """
    entries = (
        EliminationEntry(
            key="ic_balances",
            description="Eliminate intercompany receivables/payables",
            debit_account="Intercompany Payables",
            credit_account="Intercompany Receivables",
            amount=round_whole(abs(revenue * rates.intercompany_balances)),
        ),
        EliminationEntry(
            key="ic_sales",
            description="Eliminate intercompany sales/purchases",
            debit_account="Revenue",
            credit_account="Cost of Goods Sold",
            amount=round_whole(abs(revenue * rates.intercompany_sales)),
        ),
    )
    total = sum((e.amount for e in entries), ZERO)
    return EliminationSummary(
        entries=entries,
        revenue=revenue,
        net_income=net_income,
        total_eliminated=total,
        net_income_after_eliminations=net_income - total,
    )
