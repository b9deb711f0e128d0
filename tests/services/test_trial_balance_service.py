"""Tests for TrialBalanceService: persistence, lifecycle, adjustments, audit."""

from datetime import date
from decimal import Decimal

import pytest

from consultflow_kernel.domain.dtos import (
    AuditAction,
    AuditEntity,
    TrialBalance,
    TrialBalanceEntry,
    TrialBalanceStatus,
)
from consultflow_kernel.exceptions import (
    AdjustmentNotFoundError,
    AdjustmentSidesError,
    DuplicateRecordError,
    InvalidStatusTransitionError,
    StatusConflictError,
    TrialBalanceLockedError,
    TrialBalanceNotFoundError,
    UnknownAccountError,
)
from tests.conftest import TEST_ACTOR

D = Decimal


def _tb(tb_id="tb-jan", entries=None, start=date(2024, 1, 1), end=date(2024, 1, 31), currency="NGN"):
    return TrialBalance(
        id=tb_id,
        company_id="lagos",
        period_start=start,
        period_end=end,
        entries=entries if entries is not None else (
            TrialBalanceEntry("1000", D("1000"), D("0")),
            TrialBalanceEntry("4000", D("0"), D("1000")),
        ),
        currency=currency,
    )


@pytest.fixture
def saved_tb(tb_service, companies):
    return tb_service.add_tb("lagos", _tb(), actor=TEST_ACTOR)


def _advance_to(tb_service, status):
    for step in (
        TrialBalanceStatus.PENDING_APPROVAL,
        TrialBalanceStatus.APPROVED,
        TrialBalanceStatus.LOCKED,
    ):
        tb_service.update_tb_status("lagos", "tb-jan", step, actor=TEST_ACTOR)
        if step == status:
            return


class TestAddTrialBalance:
    def test_drops_zero_and_parent_entries(self, tb_service, companies):
        tb = _tb(entries=[
            TrialBalanceEntry("1999", D("0"), D("0")),
            TrialBalanceEntry("1000", D("500"), D("0")),
            TrialBalanceEntry("1999", D("250"), D("0")),
            TrialBalanceEntry("5100", D("0"), D("0")),
            TrialBalanceEntry("4000", D("0"), D("500")),
        ])
        saved = tb_service.add_tb("lagos", tb, actor=TEST_ACTOR)
        assert [e.account_code for e in saved.entries] == ["1000", "4000"]
        assert tb_service.get_tb("lagos", "tb-jan").entries == saved.entries

    def test_unknown_account_rejected_and_nothing_written(self, tb_service, audit_service, companies):
        tb = _tb(entries=[TrialBalanceEntry("8888", D("10"), D("0"))])
        with pytest.raises(UnknownAccountError) as exc_info:
            tb_service.add_tb("lagos", tb)
        assert exc_info.value.account_codes == ["8888"]
        assert tb_service.list_tb("lagos") == []
        assert audit_service.list_audit("lagos") == []

    def test_duplicate_id_rejected(self, tb_service, saved_tb):
        with pytest.raises(DuplicateRecordError):
            tb_service.add_tb("lagos", _tb())

    def test_created_in_draft_with_audit_event(self, saved_tb, audit_service):
        assert saved_tb.status == TrialBalanceStatus.DRAFT
        (event,) = audit_service.list_audit("lagos")
        assert event.entity == AuditEntity.TRIAL_BALANCE
        assert event.action == AuditAction.CREATE
        assert event.actor == TEST_ACTOR
        assert event.meta["entry_count"] == 2

    def test_stamps_upload_metadata(self, saved_tb, deterministic_clock):
        assert saved_tb.uploaded_by == TEST_ACTOR
        assert saved_tb.uploaded_at == deterministic_clock.now()

    def test_logs_tb_added_with_context(self, tb_service, companies, captured_logs):
        tb_service.add_tb("lagos", _tb(), actor=TEST_ACTOR)
        record = next(r for r in captured_logs() if r["message"] == "tb_added")
        assert record["company_id"] == "lagos"
        assert record["tb_id"] == "tb-jan"
        assert record["is_balanced"] is True


class TestQueries:
    def test_list_ordered_by_period(self, tb_service, companies):
        tb_service.add_tb("lagos", _tb("tb-feb", start=date(2024, 2, 1), end=date(2024, 2, 29)))
        tb_service.add_tb("lagos", _tb("tb-jan"))
        assert [tb.id for tb in tb_service.list_tb("lagos")] == ["tb-jan", "tb-feb"]

    def test_latest_on_or_before(self, tb_service, companies):
        tb_service.add_tb("lagos", _tb("tb-jan"))
        tb_service.add_tb("lagos", _tb("tb-feb", start=date(2024, 2, 1), end=date(2024, 2, 29)))
        assert tb_service.latest_tb("lagos").id == "tb-feb"
        assert tb_service.latest_tb("lagos", on_or_before=date(2024, 2, 15)).id == "tb-jan"
        assert tb_service.latest_tb("lagos", on_or_before=date(2023, 12, 31)) is None

    def test_get_missing(self, tb_service, companies):
        with pytest.raises(TrialBalanceNotFoundError):
            tb_service.get_tb("lagos", "nope")


class TestStatus:
    def test_one_step_forward(self, tb_service, saved_tb, audit_service):
        updated = tb_service.update_tb_status(
            "lagos", "tb-jan", TrialBalanceStatus.PENDING_APPROVAL, actor=TEST_ACTOR,
        )
        assert updated.status == TrialBalanceStatus.PENDING_APPROVAL
        event = audit_service.list_audit("lagos")[-1]
        assert event.action == AuditAction.STATUS_CHANGE
        assert event.changes == {"status": {"from": "draft", "to": "pending_approval"}}

    def test_skipping_rejected(self, tb_service, saved_tb):
        with pytest.raises(InvalidStatusTransitionError):
            tb_service.update_tb_status("lagos", "tb-jan", TrialBalanceStatus.LOCKED)
        assert tb_service.get_tb("lagos", "tb-jan").status == TrialBalanceStatus.DRAFT

    def test_same_status_is_noop_without_audit(self, tb_service, saved_tb, audit_service):
        before = len(audit_service.list_audit("lagos"))
        tb_service.update_tb_status("lagos", "tb-jan", TrialBalanceStatus.DRAFT)
        assert len(audit_service.list_audit("lagos")) == before

    def test_expected_status_conflict(self, tb_service, saved_tb):
        tb_service.update_tb_status("lagos", "tb-jan", TrialBalanceStatus.PENDING_APPROVAL)
        with pytest.raises(StatusConflictError):
            tb_service.update_tb_status(
                "lagos", "tb-jan", TrialBalanceStatus.APPROVED,
                expected_status=TrialBalanceStatus.DRAFT,
            )

    def test_accepts_string_status(self, tb_service, saved_tb):
        updated = tb_service.update_tb_status("lagos", "tb-jan", "pending_approval")
        assert updated.status == TrialBalanceStatus.PENDING_APPROVAL


class TestAdjustments:
    def test_add_adjustment(self, tb_service, saved_tb, audit_service, deterministic_clock):
        adj = tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "200", "0", "Accrued salaries", TEST_ACTOR,
        )
        assert adj.debit == D("200")
        assert adj.created_at == deterministic_clock.now()
        stored = tb_service.get_tb("lagos", "tb-jan")
        assert stored.adjustments == (adj,)
        totals = tb_service.compute_adjusted_totals(stored)
        assert totals.net_debit == D("1200")
        assert not totals.is_balanced
        event = audit_service.list_audit("lagos", entity=AuditEntity.ADJUSTMENT)[0]
        assert event.action == AuditAction.CREATE
        assert event.changes["debit"] == {"from": None, "to": "200"}

    def test_allowed_in_pending_approval(self, tb_service, saved_tb):
        _advance_to(tb_service, TrialBalanceStatus.PENDING_APPROVAL)
        tb_service.add_tb_adjustment("lagos", "tb-jan", "5000", "1", "0", "r", TEST_ACTOR)

    @pytest.mark.parametrize("status", [TrialBalanceStatus.APPROVED, TrialBalanceStatus.LOCKED])
    def test_add_rejected_after_approval_without_audit(
        self, tb_service, saved_tb, audit_service, status,
    ):
        _advance_to(tb_service, status)
        before = audit_service.list_audit("lagos")
        with pytest.raises(TrialBalanceLockedError):
            tb_service.add_tb_adjustment("lagos", "tb-jan", "5000", "200", "0", "late", TEST_ACTOR)
        assert tb_service.get_tb("lagos", "tb-jan").adjustments == ()
        assert audit_service.list_audit("lagos") == before

    def test_delete_rejected_when_locked_without_audit(self, tb_service, saved_tb, audit_service):
        adj = tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "200", "0", "r", TEST_ACTOR, adjustment_id="adj-1",
        )
        _advance_to(tb_service, TrialBalanceStatus.LOCKED)
        before = audit_service.list_audit("lagos")
        with pytest.raises(TrialBalanceLockedError):
            tb_service.delete_tb_adjustment("lagos", "tb-jan", "adj-1", actor=TEST_ACTOR)
        assert tb_service.get_tb("lagos", "tb-jan").adjustments == (adj,)
        assert audit_service.list_audit("lagos") == before

    def test_two_sided_adjustment_rejected(self, tb_service, saved_tb):
        with pytest.raises(AdjustmentSidesError):
            tb_service.add_tb_adjustment("lagos", "tb-jan", "5000", "10", "10", "r", TEST_ACTOR)

    def test_unknown_account_rejected(self, tb_service, saved_tb):
        with pytest.raises(UnknownAccountError):
            tb_service.add_tb_adjustment("lagos", "tb-jan", "7777", "10", "0", "r", TEST_ACTOR)

    def test_duplicate_adjustment_id(self, tb_service, saved_tb):
        tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "1", "0", "r", TEST_ACTOR, adjustment_id="adj-1",
        )
        with pytest.raises(DuplicateRecordError):
            tb_service.add_tb_adjustment(
                "lagos", "tb-jan", "5000", "1", "0", "r", TEST_ACTOR, adjustment_id="adj-1",
            )

    def test_replace_adjustment_audits_changed_fields(self, tb_service, saved_tb, audit_service):
        tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "100", "0", "r", TEST_ACTOR, adjustment_id="adj-1",
        )
        new = tb_service.replace_tb_adjustment(
            "lagos", "tb-jan", "adj-1", "5100", "150", "0", "r", TEST_ACTOR,
        )
        assert new.id == "adj-1"
        assert new.account_code == "5100"
        assert len(tb_service.get_tb("lagos", "tb-jan").adjustments) == 1
        event = audit_service.list_audit("lagos")[-1]
        assert event.action == AuditAction.UPDATE
        assert set(event.changes) == {"account_code", "debit"}

    def test_delete_adjustment(self, tb_service, saved_tb, audit_service):
        tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "100", "0", "r", TEST_ACTOR, adjustment_id="adj-1",
        )
        removed = tb_service.delete_tb_adjustment("lagos", "tb-jan", "adj-1", actor=TEST_ACTOR)
        assert removed.id == "adj-1"
        assert tb_service.get_tb("lagos", "tb-jan").adjustments == ()
        assert audit_service.list_audit("lagos")[-1].action == AuditAction.DELETE

    def test_delete_missing_adjustment(self, tb_service, saved_tb):
        with pytest.raises(AdjustmentNotFoundError):
            tb_service.delete_tb_adjustment("lagos", "tb-jan", "ghost")

    def test_foreign_currency_adjustment_converted(self, tb_service, saved_tb, add_rate):
        add_rate("lagos", "NGN", "USD", date(2024, 1, 31), "1500")
        adj = tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "2", "0", "USD fee", TEST_ACTOR, currency="USD",
        )
        assert adj.debit == D("3000.00")
        assert adj.original_debit == D("2")
        assert adj.fx_rate_to_base == D("1500")
        assert not adj.fx_fallback_used

    def test_foreign_adjustment_without_rate_is_flagged(
        self, tb_service, saved_tb, audit_service, captured_logs,
    ):
        adj = tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "100", "0", "usd fee", TEST_ACTOR,
            currency="USD", adjustment_id="adj-usd",
        )
        assert adj.debit == D("100.00")
        assert adj.fx_rate_to_base == D("1")
        assert adj.fx_fallback_used

        stored = tb_service.get_tb("lagos", "tb-jan").find_adjustment("adj-usd")
        assert stored.fx_fallback_used

        event = audit_service.list_audit("lagos", entity_id="adj-usd")[-1]
        assert event.meta["fx_fallback_used"] is True
        added = [r for r in captured_logs() if r["message"] == "adjustment_added"]
        assert added[-1]["fx_fallback_used"] is True

    def test_same_currency_adjustment_not_flagged(self, tb_service, saved_tb):
        adj = tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "100", "0", "r", TEST_ACTOR, currency="NGN",
        )
        assert adj.fx_rate_to_base is None
        assert not adj.fx_fallback_used

    def test_entries_update_keeps_adjustments(self, tb_service, saved_tb):
        adj = tb_service.add_tb_adjustment("lagos", "tb-jan", "5000", "5", "0", "r", TEST_ACTOR)
        updated = tb_service.update_tb_entries(
            "lagos", "tb-jan", [TrialBalanceEntry("1000", D("700"), D("0"))], actor=TEST_ACTOR,
        )
        assert [e.debit for e in updated.entries] == [D("700")]
        assert updated.adjustments == (adj,)

    @pytest.mark.parametrize("status", [TrialBalanceStatus.APPROVED, TrialBalanceStatus.LOCKED])
    def test_entries_update_rejected_once_approved(self, tb_service, saved_tb, status):
        _advance_to(tb_service, status)
        with pytest.raises(TrialBalanceLockedError):
            tb_service.update_tb_entries(
                "lagos", "tb-jan", [TrialBalanceEntry("1000", D("700"), D("0"))],
            )
        assert tb_service.get_tb("lagos", "tb-jan").entries == saved_tb.entries


class TestAuditChain:
    def test_chain_validates_after_mutations(self, tb_service, saved_tb, audit_service):
        tb_service.add_tb_adjustment("lagos", "tb-jan", "5000", "5", "0", "r", TEST_ACTOR)
        tb_service.update_tb_status("lagos", "tb-jan", TrialBalanceStatus.PENDING_APPROVAL)
        events = audit_service.list_audit("lagos")
        assert [e.seq for e in events] == [1, 2, 3]
        assert events[0].prev_hash is None
        assert events[1].prev_hash == events[0].hash
        assert audit_service.validate_chain("lagos")
