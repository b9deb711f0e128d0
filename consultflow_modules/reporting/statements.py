"""
Pure financial statement transformation functions.

These functions transform trial balance data, account metadata and monthly
series figures into structured financial statements. ZERO I/O. ZERO side
effects.

All monetary values are Decimal. All inputs/outputs are frozen dataclasses
or plain mappings of account code to debit-positive balance.

Two derivations exist for the balance sheet and the cash flow:

- From trial balances, when the selected companies have them.
- Heuristic, from the latest series point and the ratios in
  ``ReportingConfig``, when they do not.  The result's ``source`` says
  which one was used.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from consultflow_kernel.domain.chart_of_accounts import accounts_by_code
from consultflow_kernel.domain.dtos import Account, AccountType, TrialBalance
from consultflow_kernel.domain.trial_balance import account_balances
from consultflow_kernel.domain.values import ZERO, round_whole
from consultflow_modules.reporting.config import (
    CashFlowRatios,
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

_ASSET = "asset"
_LIABILITY = "liability"
_EQUITY = "equity"
_EARNINGS = "earnings"


# =========================================================================
# 1. PROFIT AND LOSS
# =========================================================================


def compute_pl_from_balances(
    balances: Mapping[str, Decimal],
    accounts: Mapping[str, Account],
) -> ProfitAndLoss:
    """
    P&L from debit-positive balances keyed by account code.

    Revenue accounts contribute ``-balance``; expense accounts contribute
    ``+balance`` to opex; asset accounts whose name contains "inventory"
    contribute ``+balance`` to cogs.  Codes missing from ``accounts`` are
    ignored.
    """
    revenue = cogs = opex = ZERO
    for code, balance in balances.items():
        acct = accounts.get(code)
        if acct is None:
            continue
        if acct.account_type == AccountType.REVENUE:
            revenue -= balance
        elif acct.account_type == AccountType.EXPENSE:
            opex += balance
        elif (
            acct.account_type == AccountType.ASSET
            and "inventory" in (acct.account_name or "").lower()
        ):
            cogs += balance
    gross_profit = revenue - cogs
    return ProfitAndLoss(
        revenue=revenue,
        cogs=cogs,
        opex=opex,
        gross_profit=gross_profit,
        net_income=gross_profit - opex,
    )


def compute_pl_from_tb(
    coa: Sequence[Account],
    tb: TrialBalance,
    include_adjustments: bool = False,
) -> ProfitAndLoss:
    """Derive the P&L of one trial balance against its chart of accounts."""
    return compute_pl_from_balances(
        account_balances(tb, include_adjustments=include_adjustments),
        accounts_by_code(coa),
    )


# =========================================================================
# Helpers
# =========================================================================


def _classify(
    code: str,
    accounts: Mapping[str, Account],
    config: ReportingConfig,
) -> str | None:
    clf = config.classification
    if code in config.balance_sheet_codes.equity:
        return _EQUITY
    acct = accounts.get(code)
    if acct is not None:
        return {
            AccountType.ASSET: _ASSET,
            AccountType.LIABILITY: _LIABILITY,
            AccountType.EQUITY: _EQUITY,
        }.get(acct.account_type, _EARNINGS)
    if clf.matches_prefix(code, clf.current_asset_prefixes + clf.non_current_asset_prefixes):
        return _ASSET
    if clf.matches_prefix(
        code, clf.current_liability_prefixes + clf.non_current_liability_prefixes,
    ):
        return _LIABILITY
    if clf.matches_prefix(code, clf.equity_prefixes):
        return _EQUITY
    return None


def _sum_codes(balances: Mapping[str, Decimal], codes: Iterable[str]) -> Decimal:
    return sum((balances.get(c, ZERO) for c in codes), ZERO)


def _line(key: str, label: str, amount: Decimal) -> StatementLine:
    return StatementLine(key=key, label=label, amount=amount)


# =========================================================================
# 2. BALANCE SHEET
# =========================================================================


def build_balance_sheet_from_tb(
    balances: Mapping[str, Decimal],
    accounts: Mapping[str, Account],
    as_of: date | None,
    config: ReportingConfig,
) -> BalanceSheet:
    """
    Balance sheet from debit-positive TB balances.

    Unclosed revenue and expense balances are carried into equity as
    current earnings, so a balanced trial balance yields a balanced sheet.
    """
    codes = config.balance_sheet_codes
    total_assets = total_liabilities = equity = ZERO
    for code, balance in balances.items():
        section = _classify(code, accounts, config)
        if section == _ASSET:
            total_assets += balance
        elif section == _LIABILITY:
            total_liabilities -= balance
        elif section in (_EQUITY, _EARNINGS):
            equity -= balance

    cash = _sum_codes(balances, codes.cash)
    receivables = _sum_codes(balances, codes.receivables)
    inventory = _sum_codes(balances, codes.inventory)
    payables = -_sum_codes(balances, codes.payables)
    debt = -_sum_codes(balances, codes.debt)
    other_assets = total_assets - cash - receivables - inventory
    other_liabilities = total_liabilities - payables - debt

    lines = (
        _line("cash", "Cash & Cash Equivalents", cash),
        _line("ar", "Accounts Receivable", receivables),
        _line("inv", "Inventory", inventory),
        _line("oa", "Other Assets", other_assets),
        _line("ta", "Total Assets", total_assets),
        _line("ap", "Accounts Payable", -payables),
        _line("accr", "Accruals & Other Liabilities", -other_liabilities),
        _line("debt", "Debt", -debt),
        _line("tl", "Total Liabilities", -total_liabilities),
        _line("eq", "Equity", equity),
    )
    return BalanceSheet(
        as_of=as_of,
        lines=lines,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        equity=equity,
        source=StatementSource.TRIAL_BALANCE,
    )


def build_heuristic_balance_sheet(
    revenue: Decimal,
    cogs: Decimal,
    expenses: Decimal,
    cash: Decimal,
    as_of: date | None,
    ratios: HeuristicRatios,
) -> BalanceSheet:
    """
    Balance sheet estimated from one series point.

    AR, inventory, AP, accruals and debt are ratios of the point's figures,
    rounded to whole units; equity is the residual.
    """
    receivables = round_whole(revenue * ratios.receivables_of_revenue)
    inventory = round_whole(cogs * ratios.inventory_of_cogs)
    total_assets = cash + receivables + inventory
    payables = round_whole(cogs * ratios.payables_of_cogs)
    accruals = round_whole(expenses * ratios.accruals_of_expenses)
    debt = round_whole(total_assets * ratios.debt_of_total_assets)
    total_liabilities = payables + accruals + debt
    equity = total_assets - total_liabilities

    lines = (
        _line("cash", "Cash & Cash Equivalents", cash),
        _line("ar", "Accounts Receivable", receivables),
        _line("inv", "Inventory", inventory),
        _line("ta", "Total Assets", total_assets),
        _line("ap", "Accounts Payable", -payables),
        _line("accr", "Accruals", -accruals),
        _line("debt", "Debt", -debt),
        _line("tl", "Total Liabilities", -total_liabilities),
        _line("eq", "Equity", equity),
    )
    return BalanceSheet(
        as_of=as_of,
        lines=lines,
        total_assets=total_assets,
        total_liabilities=total_liabilities,
        equity=equity,
        source=StatementSource.HEURISTIC,
    )


# =========================================================================
# 3. CASH FLOW STATEMENT
# =========================================================================


def _heuristic_investing(revenue: Decimal, ratios: CashFlowRatios) -> Decimal:
    return -round_whole(revenue * ratios.capex_of_revenue)


def _heuristic_financing(revenue: Decimal, ratios: CashFlowRatios) -> tuple[Decimal, Decimal]:
    return (
        round_whole(revenue * ratios.borrowing_of_revenue),
        round_whole(revenue * ratios.repayment_of_revenue),
    )


def build_heuristic_cash_flow(
    revenue: Decimal,
    cogs: Decimal,
    expenses: Decimal,
    from_date: date | None,
    to_date: date | None,
    ratios: CashFlowRatios,
) -> CashFlow:
    """
    Cash flow estimated from one series point.

    operating = net income + non-cash share of cogs - working capital share
    of revenue; investing and financing are ratios of revenue.
    """
    net_income = (revenue - cogs) - expenses
    non_cash = round_whole(cogs * ratios.non_cash_of_cogs)
    working_capital = -round_whole(revenue * ratios.working_capital_of_revenue)
    operating = net_income + non_cash + working_capital
    investing = _heuristic_investing(revenue, ratios)
    borrowing, repayment = _heuristic_financing(revenue, ratios)
    financing = borrowing - repayment
    net_change = operating + investing + financing

    lines = (
        _line("ni", "Net Income", net_income),
        _line("noncash", "Non-Cash Adjustments", non_cash),
        _line("wc", "Changes in Working Capital", working_capital),
        _line("op", "Net Cash from Operations", operating),
        _line("capex", "Capital Expenditure", investing),
        _line("inv", "Net Cash from Investing", investing),
        _line("borrow", "Borrowings", borrowing),
        _line("repay", "Repayments", -repayment),
        _line("fin", "Net Cash from Financing", financing),
        _line("net", "Net Change in Cash", net_change),
    )
    return CashFlow(
        from_date=from_date,
        to_date=to_date,
        net_income=net_income,
        operating=operating,
        investing=investing,
        financing=financing,
        net_change=net_change,
        lines=lines,
        source=StatementSource.HEURISTIC,
    )


def build_cash_flow_from_tb(
    current: Mapping[str, Decimal],
    prior: Mapping[str, Decimal],
    accounts: Mapping[str, Account],
    net_income: Decimal,
    revenue: Decimal,
    from_date: date | None,
    to_date: date | None,
    config: ReportingConfig,
) -> CashFlow:
    """
    Build the cash flow from two TB snapshots (indirect method).

    Steps:
    1. Working capital: delta_wc = dAR + dInventory - dAP;
       operating = net_income - delta_wc.
    2. Investing: minus the change in non-current assets.
    3. Financing: change in non-current liabilities and equity, excluding
       retained earnings.

    Investing or financing fall back to their revenue ratios when neither
    snapshot carries an account of that kind.
    """
    clf = config.classification
    codes = config.balance_sheet_codes
    ratios = config.cash_flow

    # change = current - prior (positive means increase, debit-positive)
    def _change(code: str) -> Decimal:
        return current.get(code, ZERO) - prior.get(code, ZERO)

    d_receivables = sum((_change(c) for c in codes.receivables), ZERO)
    d_inventory = sum((_change(c) for c in codes.inventory), ZERO)
    d_payables = -sum((_change(c) for c in codes.payables), ZERO)
    delta_wc = d_receivables + d_inventory - d_payables
    operating = net_income - delta_wc

    all_codes = sorted(set(current) | set(prior))
    investing_codes = [
        c for c in all_codes
        if _classify(c, accounts, config) == _ASSET
        and clf.matches_prefix(c, clf.non_current_asset_prefixes)
    ]
    financing_codes = [
        c for c in all_codes
        if not clf.matches_prefix(c, clf.retained_earnings_prefixes)
        and (
            (
                _classify(c, accounts, config) == _LIABILITY
                and clf.matches_prefix(c, clf.non_current_liability_prefixes)
            )
            or _classify(c, accounts, config) == _EQUITY
        )
    ]

    if investing_codes:
        investing = -sum((_change(c) for c in investing_codes), ZERO)
    else:
        investing = _heuristic_investing(revenue, ratios)
    if financing_codes:
        # Liability and equity increases are credits, hence the sign flip
        financing = -sum((_change(c) for c in financing_codes), ZERO)
    else:
        borrowing, repayment = _heuristic_financing(revenue, ratios)
        financing = borrowing - repayment

    net_change = operating + investing + financing
    lines = (
        _line("ni", "Net Income", net_income),
        _line("d_ar", "Change in Accounts Receivable", -d_receivables),
        _line("d_inv", "Change in Inventory", -d_inventory),
        _line("d_ap", "Change in Accounts Payable", d_payables),
        _line("op", "Net Cash from Operations", operating),
        _line("inv", "Net Cash from Investing", investing),
        _line("fin", "Net Cash from Financing", financing),
        _line("net", "Net Change in Cash", net_change),
    )
    return CashFlow(
        from_date=from_date,
        to_date=to_date,
        net_income=net_income,
        operating=operating,
        investing=investing,
        financing=financing,
        net_change=net_change,
        lines=lines,
        source=StatementSource.TRIAL_BALANCE,
    )
