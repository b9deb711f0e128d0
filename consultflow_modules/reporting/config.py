"""
Reporting Configuration Schema.

Defines account classification, the balance-sheet account codes used for
TB-derived statements, and the ratios behind the heuristic statements
produced when no trial balance is available.  Account classification uses
code prefixes consistent with the seeded COA structure (1xxx=assets,
2xxx=liabilities, 3xxx=equity, 4xxx=revenue, 5xxx+=expenses).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Self

from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.values import ZERO, to_decimal
from consultflow_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class AccountClassification:
    """
    Rules for classifying accounts into financial statement sections.

    Prefix matching: an account matches a section if its code
    starts with any of the configured prefixes.
    """

    # Balance sheet: assets
    current_asset_prefixes: tuple[str, ...] = ("10", "11", "12", "13", "14")
    non_current_asset_prefixes: tuple[str, ...] = ("15", "16", "17", "18", "19")

    # Balance sheet: liabilities
    current_liability_prefixes: tuple[str, ...] = ("20", "21", "22", "23", "24")
    non_current_liability_prefixes: tuple[str, ...] = ("25", "26", "27", "28", "29")

    # Balance sheet: equity
    equity_prefixes: tuple[str, ...] = ("30", "31", "32", "33")
    retained_earnings_prefixes: tuple[str, ...] = ("3100",)

    def matches_prefix(self, code: str, prefixes: tuple[str, ...]) -> bool:
        """Check if an account code matches any of the given prefixes."""
        return any(code.startswith(p) for p in prefixes)


@dataclass
class BalanceSheetCodes:
    """Account codes summed into each TB-derived balance sheet line."""

    cash: tuple[str, ...] = ("1000",)
    receivables: tuple[str, ...] = ("1100",)
    inventory: tuple[str, ...] = ("1200",)
    payables: tuple[str, ...] = ("2000",)
    debt: tuple[str, ...] = ("2100", "2500")
    equity: tuple[str, ...] = ("3000", "3100")


@dataclass
class HeuristicRatios:
    """
    Ratios for the balance sheet estimated from a monthly series point.

    AR and inventory are fractions of revenue and cogs; debt is a fraction
    of total assets.
    """

    receivables_of_revenue: Decimal = Decimal("0.30")
    inventory_of_cogs: Decimal = Decimal("0.20")
    payables_of_cogs: Decimal = Decimal("0.10")
    accruals_of_expenses: Decimal = Decimal("0.10")
    debt_of_total_assets: Decimal = Decimal("0.15")


@dataclass
class CashFlowRatios:
    """Ratios for the cash flow estimated without a prior TB snapshot."""

    non_cash_of_cogs: Decimal = Decimal("0.10")
    working_capital_of_revenue: Decimal = Decimal("0.05")
    capex_of_revenue: Decimal = Decimal("0.08")
    borrowing_of_revenue: Decimal = Decimal("0.03")
    repayment_of_revenue: Decimal = Decimal("0.02")


@dataclass
class EliminationRates:
    """Inter-company effects as fractions of consolidated revenue."""

    intercompany_balances: Decimal = Decimal("0.02")
    intercompany_sales: Decimal = Decimal("0.01")


def _decimals(cls: type, data: dict[str, Any]):
    return cls(**{k: to_decimal(v) for k, v in data.items()})


def _code_tuples(cls: type, data: dict[str, Any]):
    return cls(**{k: tuple(str(c) for c in v) for k, v in data.items()})


_SECTIONS: dict[str, tuple[type, Any]] = {
    "classification": (AccountClassification, _code_tuples),
    "balance_sheet_codes": (BalanceSheetCodes, _code_tuples),
    "heuristics": (HeuristicRatios, _decimals),
    "cash_flow": (CashFlowRatios, _decimals),
    "eliminations": (EliminationRates, _decimals),
}


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting and consolidation modules.

    Controls account classification, heuristic ratios and the default
    reporting currency.
    """

    classification: AccountClassification = field(
        default_factory=AccountClassification,
    )
    balance_sheet_codes: BalanceSheetCodes = field(default_factory=BalanceSheetCodes)
    heuristics: HeuristicRatios = field(default_factory=HeuristicRatios)
    cash_flow: CashFlowRatios = field(default_factory=CashFlowRatios)
    eliminations: EliminationRates = field(default_factory=EliminationRates)

    # Currency reports are presented in when the query names none
    default_currency: str = "NGN"

    # Number of insights attached to a report bundle
    insight_limit: int = 10

    def __post_init__(self):
        if self.insight_limit < 0:
            raise ValueError("insight_limit cannot be negative")
        self.default_currency = CurrencyRegistry.normalize(self.default_currency)
        for section in (self.heuristics, self.cash_flow, self.eliminations):
            for f in fields(section):
                if getattr(section, f.name) < ZERO:
                    raise ValueError(f"{f.name} cannot be negative")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g. a parsed YAML document)."""
        data = dict(data)
        for key, (section_cls, build) in _SECTIONS.items():
            if key in data and isinstance(data[key], dict):
                data[key] = build(section_cls, data[key])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
