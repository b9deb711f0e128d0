"""Tests for P&L, balance sheet and cash flow derivation."""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from consultflow_kernel.domain.chart_of_accounts import accounts_by_code
from consultflow_kernel.domain.dtos import TrialBalance, TrialBalanceAdjustment, TrialBalanceEntry
from consultflow_modules.reporting import (
    CashFlowRatios,
    HeuristicRatios,
    ReportingConfig,
    StatementSource,
    build_balance_sheet_from_tb,
    build_cash_flow_from_tb,
    build_heuristic_balance_sheet,
    build_heuristic_cash_flow,
    compute_pl_from_balances,
    compute_pl_from_tb,
)
from tests.conftest import seed_accounts

D = Decimal
COA = seed_accounts("lagos")
ACCOUNTS = accounts_by_code(COA)
JAN_31 = date(2024, 1, 31)


def _tb(*lines):
    return TrialBalance(
        id="tb",
        company_id="lagos",
        period_start=date(2024, 1, 1),
        period_end=JAN_31,
        entries=tuple(TrialBalanceEntry(code, D(dr), D(cr)) for code, dr, cr in lines),
    )


class TestProfitAndLoss:
    def test_revenue_and_expense(self):
        tb = _tb(("4000", "0", "1000"), ("5000", "500", "0"), ("1000", "500", "0"))
        pl = compute_pl_from_tb(COA, tb)
        assert pl.revenue == D("1000")
        assert pl.opex == D("500")
        assert pl.cogs == D("0")
        assert pl.gross_profit == D("1000")
        assert pl.net_income == D("500")

    def test_inventory_balance_counts_as_cogs(self):
        pl = compute_pl_from_balances({"4000": D("-1000"), "1200": D("300")}, ACCOUNTS)
        assert pl.cogs == D("300")
        assert pl.gross_profit == D("700")

    def test_unknown_codes_ignored(self):
        pl = compute_pl_from_balances({"4999": D("-1000")}, ACCOUNTS)
        assert pl.revenue == D("0")

    def test_adjustments_excluded_by_default(self):
        adj = TrialBalanceAdjustment(
            id="a", tb_id="tb", account_code="4000", debit=D("0"), credit=D("100"),
            reason="r", created_by="x", created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
        )
        tb = replace(_tb(("4000", "0", "1000")), adjustments=(adj,))
        assert compute_pl_from_tb(COA, tb).revenue == D("1000")
        assert compute_pl_from_tb(COA, tb, include_adjustments=True).revenue == D("1100")


class TestBalanceSheetFromTrialBalance:
    def test_balanced_tb_gives_balanced_sheet(self):
        balances = {
            "1000": D("5000"), "1100": D("2000"), "1200": D("1000"), "1500": D("4000"),
            "2000": D("-1500"), "2500": D("-3000"),
            "3000": D("-6000"), "3100": D("-1000"),
            "4000": D("-3000"), "5000": D("2500"),
        }
        sheet = build_balance_sheet_from_tb(balances, ACCOUNTS, JAN_31, ReportingConfig())
        assert sheet.source == StatementSource.TRIAL_BALANCE
        assert sheet.total_assets == D("12000")
        assert sheet.total_liabilities == D("4500")
        assert sheet.equity == D("7500")
        assert sheet.is_balanced
        assert sheet.amount("cash") == D("5000")
        assert sheet.amount("oa") == D("4000")
        assert sheet.amount("ap") == D("-1500")
        assert sheet.amount("debt") == D("-3000")
        assert sheet.amount("tl") == D("-4500")

    def test_unknown_code_classified_by_prefix(self):
        sheet = build_balance_sheet_from_tb(
            {"1050": D("100"), "2050": D("-100")}, ACCOUNTS, JAN_31, ReportingConfig(),
        )
        assert sheet.total_assets == D("100")
        assert sheet.total_liabilities == D("100")

    def test_missing_line_raises_key_error(self):
        sheet = build_balance_sheet_from_tb({}, ACCOUNTS, JAN_31, ReportingConfig())
        with pytest.raises(KeyError):
            sheet.amount("nope")


class TestHeuristicBalanceSheet:
    def test_ratios(self):
        sheet = build_heuristic_balance_sheet(
            D("1000000"), D("400000"), D("300000"), D("500000"), JAN_31, HeuristicRatios(),
        )
        assert sheet.source == StatementSource.HEURISTIC
        assert sheet.amount("ar") == D("300000")
        assert sheet.amount("inv") == D("80000")
        assert sheet.total_assets == D("880000")
        assert sheet.amount("ap") == D("-40000")
        assert sheet.amount("accr") == D("-30000")
        assert sheet.amount("debt") == D("-132000")
        assert sheet.total_liabilities == D("202000")
        assert sheet.equity == D("678000")
        assert sheet.is_balanced

    def test_amounts_rounded_to_whole_units(self):
        sheet = build_heuristic_balance_sheet(
            D("10.5"), D("0"), D("0"), D("0"), None, HeuristicRatios(),
        )
        assert sheet.amount("ar") == D("3")


class TestHeuristicCashFlow:
    def test_components(self):
        flow = build_heuristic_cash_flow(
            D("1000000"), D("400000"), D("300000"),
            date(2024, 1, 1), JAN_31, CashFlowRatios(),
        )
        assert flow.net_income == D("300000")
        assert flow.operating == D("300000") + D("40000") - D("50000")
        assert flow.investing == D("-80000")
        assert flow.financing == D("30000") - D("20000")
        assert flow.net_change == flow.operating + flow.investing + flow.financing
        assert flow.source == StatementSource.HEURISTIC


class TestCashFlowFromTrialBalances:
    def test_working_capital_and_investing(self):
        prior = {"1000": D("1000"), "1100": D("500"), "1200": D("200"), "2000": D("-300"),
                 "1500": D("1000"), "2500": D("-1000"), "3000": D("-1400")}
        current = {"1000": D("1500"), "1100": D("700"), "1200": D("100"), "2000": D("-400"),
                   "1500": D("1300"), "2500": D("-1200"), "3000": D("-1400")}
        flow = build_cash_flow_from_tb(
            current, prior, ACCOUNTS, D("600"), D("2000"),
            date(2024, 1, 1), JAN_31, ReportingConfig(),
        )
        # dAR 200, dInv -100, dAP 100 -> delta_wc = 0
        assert flow.operating == D("600")
        assert flow.investing == D("-300")
        # loan up 200 is a financing inflow
        assert flow.financing == D("200")
        assert flow.net_change == D("500")
        assert flow.source == StatementSource.TRIAL_BALANCE

    def test_retained_earnings_excluded_from_financing(self):
        prior = {"3100": D("0"), "2500": D("-100")}
        current = {"3100": D("-900"), "2500": D("-100")}
        flow = build_cash_flow_from_tb(
            current, prior, ACCOUNTS, D("0"), D("0"), None, JAN_31, ReportingConfig(),
        )
        assert flow.financing == D("0")

    def test_falls_back_to_ratios_without_long_term_accounts(self):
        flow = build_cash_flow_from_tb(
            {"1000": D("10")}, {"1000": D("5")}, ACCOUNTS, D("0"), D("1000"),
            None, JAN_31, ReportingConfig(),
        )
        assert flow.investing == D("-80")
        assert flow.financing == D("10")
