"""Tests for exact, learned and fuzzy account resolution."""

from decimal import Decimal

from consultflow_ingestion.domain.types import RawAccountRow, ResolutionMethod
from consultflow_ingestion.mapping.engine import (
    MATCH_THRESHOLD,
    fuzzy_match,
    propose_mapping,
    resolve_row,
    score_candidate,
)
from tests.conftest import seed_accounts

ACCOUNTS = seed_accounts("lagos")


def _row(code, name=None, debit="10", credit="0"):
    return RawAccountRow(code, Decimal(debit), Decimal(credit), name=name)


def _account(code):
    return next(a for a in ACCOUNTS if a.account_code == code)


class TestScoring:
    def test_weights(self):
        cash = _account("1000")
        assert score_candidate("1000", cash) == 100
        assert score_candidate("cash", cash) == 80 + 40 + 20
        assert score_candidate("petty cash", cash) == 20
        assert score_candidate("cas", cash) == 40
        assert score_candidate("", cash) == 0

    def test_below_threshold_is_no_match(self):
        assert fuzzy_match("petty cash", ACCOUNTS) is None
        assert MATCH_THRESHOLD == 40

    def test_ties_keep_first_candidate(self):
        match = fuzzy_match("receivable", [_account("1100"), _account("1100")])
        assert match.account_code == "1100"


class TestResolveRow:
    def test_exact(self):
        resolution = resolve_row(_row("4000"), ACCOUNTS, {})
        assert resolution.method == ResolutionMethod.EXACT
        assert resolution.target_code == "4000"

    def test_learned_before_fuzzy(self):
        resolution = resolve_row(_row("REV-01", name="Rent"), ACCOUNTS, {"REV-01": "4000"})
        assert resolution.method == ResolutionMethod.LEARNED
        assert resolution.target_code == "4000"

    def test_fuzzy_on_name(self):
        resolution = resolve_row(_row("X-77", name="Salaries"), ACCOUNTS, {})
        assert resolution.method == ResolutionMethod.FUZZY
        assert resolution.target_code == "5000"

    def test_parent_is_never_a_target(self):
        resolution = resolve_row(_row("1999", name="Current Assets"), ACCOUNTS, {})
        assert not resolution.resolved

    def test_learned_target_that_became_parent_is_ignored(self):
        resolution = resolve_row(_row("OLD"), ACCOUNTS, {"OLD": "1999"})
        assert resolution.method == ResolutionMethod.UNRESOLVED


class TestProposeMapping:
    def test_manual_override_wins(self):
        proposal = propose_mapping([_row("4000")], ACCOUNTS, overrides={"4000": "5100"})
        (resolution,) = proposal.resolutions
        assert resolution.method == ResolutionMethod.MANUAL
        assert proposal.mapping == {"4000": "5100"}

    def test_zero_only_codes_never_block(self):
        proposal = propose_mapping(
            [_row("ZZ", debit="0"), _row("YY", name="nothing like it")], ACCOUNTS,
        )
        assert proposal.unresolved == ("YY",)
        assert not proposal.is_complete

    def test_first_seen_order(self):
        proposal = propose_mapping([_row("5000"), _row("1000"), _row("5000")], ACCOUNTS)
        assert [r.source_code for r in proposal.resolutions] == ["5000", "1000"]
