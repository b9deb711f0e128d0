"""Tests for journal transaction import with per-date FX conversion."""

from datetime import date
from decimal import Decimal

import pytest

from consultflow_kernel.domain.dtos import AuditEntity, JournalTransaction
from consultflow_kernel.exceptions import DuplicateRecordError

D = Decimal


def _txn(txn_id, on, debit="0", credit="0", currency="NGN", code="5000"):
    return JournalTransaction(
        id=txn_id,
        company_id="lagos",
        date=on,
        account_code=code,
        debit=D(debit),
        credit=D(credit),
        currency=currency,
    )


def test_converts_at_each_transactions_own_date(transaction_service, add_rate):
    add_rate("lagos", "NGN", "USD", date(2024, 1, 10), "1400")
    add_rate("lagos", "NGN", "USD", date(2024, 1, 20), "1500")
    result = transaction_service.add_transactions(
        "lagos",
        [_txn("t1", date(2024, 1, 10), debit="10", currency="USD"),
         _txn("t2", date(2024, 1, 20), debit="10", currency="USD")],
        base_currency="NGN",
    )
    assert [t.debit for t in result.transactions] == [D("14000.00"), D("15000.00")]
    assert all(t.currency == "NGN" for t in result.transactions)
    assert result.transactions[0].original_debit == D("10")
    assert not result.fx_fallback_used


def test_missing_rate_flags_fallback(transaction_service):
    result = transaction_service.add_transactions(
        "lagos", [_txn("t1", date(2024, 1, 10), debit="100", currency="USD")], base_currency="NGN",
    )
    assert result.fx_fallback_used
    assert result.transactions[0].debit == D("100.00")
    (gap,) = result.data_gaps
    assert (gap.currency, gap.on) == ("USD", date(2024, 1, 10))


def test_duplicate_ids_reject_whole_batch(transaction_service, audit_service):
    transaction_service.add_transactions(
        "lagos", [_txn("t1", date(2024, 1, 10), debit="1")], base_currency="NGN",
    )
    with pytest.raises(DuplicateRecordError):
        transaction_service.add_transactions(
            "lagos",
            [_txn("t2", date(2024, 1, 11), debit="1"), _txn("t1", date(2024, 1, 12), debit="1")],
            base_currency="NGN",
        )
    assert [t.id for t in transaction_service.list_transactions("lagos")] == ["t1"]
    assert len(audit_service.list_audit("lagos", AuditEntity.TRANSACTION)) == 1


def test_list_within_dates(transaction_service):
    transaction_service.add_transactions(
        "lagos",
        [_txn("t3", date(2024, 3, 1), debit="1"),
         _txn("t1", date(2024, 1, 1), debit="1"),
         _txn("t2", date(2024, 2, 1), debit="1")],
        base_currency="NGN",
    )
    assert [t.id for t in transaction_service.list_transactions("lagos")] == ["t1", "t2", "t3"]
    within = transaction_service.list_transactions("lagos", date(2024, 1, 15), date(2024, 2, 15))
    assert [t.id for t in within] == ["t2"]
