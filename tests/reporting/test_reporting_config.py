"""Tests for the reporting configuration schema."""

from decimal import Decimal

import pytest

from consultflow_kernel.exceptions import InvalidCurrencyError
from consultflow_modules.reporting.config import AccountClassification, ReportingConfig


def test_defaults():
    config = ReportingConfig.with_defaults()
    assert config.default_currency == "NGN"
    assert config.insight_limit == 10
    assert config.heuristics.receivables_of_revenue == Decimal("0.30")
    assert config.eliminations.intercompany_balances == Decimal("0.02")
    assert config.balance_sheet_codes.debt == ("2100", "2500")


def test_from_dict_builds_sections():
    config = ReportingConfig.from_dict({
        "default_currency": "kes",
        "heuristics": {"receivables_of_revenue": "0.25"},
        "balance_sheet_codes": {"cash": ["1000", "1010"]},
    })
    assert config.default_currency == "KES"
    assert config.heuristics.receivables_of_revenue == Decimal("0.25")
    assert config.heuristics.inventory_of_cogs == Decimal("0.20")
    assert config.balance_sheet_codes.cash == ("1000", "1010")


def test_negative_ratio_rejected():
    with pytest.raises(ValueError):
        ReportingConfig.from_dict({"cash_flow": {"capex_of_revenue": "-0.1"}})


def test_unknown_setting_rejected():
    with pytest.raises(TypeError):
        ReportingConfig.from_dict({"heuristics": {"made_up_ratio": "0.1"}})


def test_unknown_currency_rejected():
    with pytest.raises(InvalidCurrencyError):
        ReportingConfig(default_currency="ZZZ")


def test_prefix_matching():
    clf = AccountClassification()
    assert clf.matches_prefix("1510", clf.non_current_asset_prefixes)
    assert not clf.matches_prefix("1010", clf.non_current_asset_prefixes)
