"""
Financial Reporting Module (``consultflow_modules.reporting``).

Responsibility
--------------
Pure derivation of statements: profit and loss from a trial balance, and
balance sheet / cash flow either from trial balance snapshots or from the
monthly series with configurable heuristic ratios.

Architecture position
---------------------
**Modules layer** -- read-only; nothing here writes to a store.  The
consolidation service gathers inputs and calls these functions.

Invariants enforced
-------------------
* Every statement records its ``source`` (trial balance or heuristic).
* Net income is gross profit minus operating expenses.

Failure modes
-------------
* Account codes missing from the chart are ignored by the P&L and
  classified by code prefix on the balance sheet.
"""

from consultflow_modules.reporting.config import (
    AccountClassification,
    BalanceSheetCodes,
    CashFlowRatios,
    EliminationRates,
    HeuristicRatios,
    ReportingConfig,
)
from consultflow_modules.reporting.models import (
    BalanceSheet,
    CashFlow,
    ProfitAndLoss,
    StatementLine,
    StatementSource,
)
from consultflow_modules.reporting.statements import (
    build_balance_sheet_from_tb,
    build_cash_flow_from_tb,
    build_heuristic_balance_sheet,
    build_heuristic_cash_flow,
    compute_pl_from_balances,
    compute_pl_from_tb,
)

__all__ = [
    # Config
    "AccountClassification",
    "BalanceSheetCodes",
    "CashFlowRatios",
    "EliminationRates",
    "HeuristicRatios",
    "ReportingConfig",
    # Models
    "BalanceSheet",
    "CashFlow",
    "ProfitAndLoss",
    "StatementLine",
    "StatementSource",
    # Statements
    "build_balance_sheet_from_tb",
    "build_cash_flow_from_tb",
    "build_heuristic_balance_sheet",
    "build_heuristic_cash_flow",
    "compute_pl_from_balances",
    "compute_pl_from_tb",
]
