"""
Concurrent writers against the record stores.

Every writer goes through ``CompanyScopedStore.update`` so read-modify-write
cycles on one company serialize; no update may be lost.

Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest

from consultflow_kernel.domain.dtos import TrialBalance, TrialBalanceEntry
from consultflow_kernel.storage.codecs import TrialBalanceCodec
from consultflow_kernel.storage.memory import InMemoryStore
from consultflow_kernel.storage.sql import SqlAlchemyStore
from tests.conftest import TEST_ACTOR

pytestmark = pytest.mark.slow_locks

NUM_THREADS = 8
WRITES_PER_THREAD = 10


def _tb(tb_id):
    return TrialBalance(
        id=tb_id,
        company_id="lagos",
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 31),
    )


def _hammer(store, company_id):
    barrier = Barrier(NUM_THREADS, timeout=30)

    def _worker(worker):
        barrier.wait()
        for i in range(WRITES_PER_THREAD):
            store.update(company_id, lambda tbs, n=i: tbs + [_tb(f"tb-{worker}-{n}")])

    with ThreadPoolExecutor(max_workers=NUM_THREADS) as executor:
        for future in [executor.submit(_worker, w) for w in range(NUM_THREADS)]:
            future.result()


def test_in_memory_store_loses_no_updates():
    store = InMemoryStore("trial_balances", TrialBalanceCodec())
    _hammer(store, "lagos")
    assert len(store.load("lagos")) == NUM_THREADS * WRITES_PER_THREAD


def test_sql_store_loses_no_updates(session_factory):
    store = SqlAlchemyStore("trial_balances", TrialBalanceCodec(), session_factory)
    _hammer(store, "lagos")
    ids = {tb.id for tb in store.load("lagos")}
    assert len(ids) == NUM_THREADS * WRITES_PER_THREAD


def test_concurrent_adjustments_all_kept(tb_service, audit_service, companies):
    tb_service.add_tb(
        "lagos",
        TrialBalance(
            id="tb-jan",
            company_id="lagos",
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 31),
            entries=(
                TrialBalanceEntry("1000", Decimal("100"), Decimal("0")),
                TrialBalanceEntry("4000", Decimal("0"), Decimal("100")),
            ),
        ),
        actor=TEST_ACTOR,
    )
    barrier = Barrier(NUM_THREADS, timeout=30)

    def _adjust(worker):
        barrier.wait()
        return tb_service.add_tb_adjustment(
            "lagos", "tb-jan", "5000", "1", "0", f"accrual {worker}", TEST_ACTOR,
        )

    with ThreadPoolExecutor(max_workers=NUM_THREADS) as executor:
        created = list(executor.map(_adjust, range(NUM_THREADS)))

    stored = tb_service.get_tb("lagos", "tb-jan")
    assert {a.id for a in stored.adjustments} == {a.id for a in created}
    assert tb_service.compute_adjusted_totals(stored).adjustment_debit == Decimal(NUM_THREADS)
    assert len(audit_service.list_audit("lagos")) == NUM_THREADS + 1
    assert audit_service.validate_chain("lagos")
