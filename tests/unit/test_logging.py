"""Tests for the structured JSON log format and LogContext."""

import json
import logging
from datetime import date
from decimal import Decimal

from consultflow_kernel.exceptions import TrialBalanceLockedError
from consultflow_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_factory):
    logger = get_logger("test.format")
    record = record_factory(logger)
    return json.loads(StructuredFormatter().format(record))


def test_extra_fields_are_top_level_and_json_safe():
    payload = _format(lambda logger: logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "tb_added", (), None,
        extra={"amount": Decimal("10.50"), "period_end": date(2024, 1, 31), "codes": ("1000",)},
    ))
    assert payload["message"] == "tb_added"
    assert payload["logger"] == "consultflow.test.format"
    assert payload["amount"] == "10.50"
    assert payload["period_end"] == "2024-01-31"
    assert payload["codes"] == ["1000"]


def test_context_fields_included_and_restored():
    LogContext.set(actor_id="analyst")
    with LogContext.bind(company_id="lagos", tb_id="tb-1"):
        payload = _format(lambda logger: logger.makeRecord(
            logger.name, logging.INFO, __file__, 1, "inside", (), None,
        ))
    assert payload["company_id"] == "lagos"
    assert payload["tb_id"] == "tb-1"
    assert payload["actor_id"] == "analyst"
    assert LogContext.get_all() == {"actor_id": "analyst"}


def test_exception_fields():
    exc = TrialBalanceLockedError("tb-1", "locked", "add adjustment")
    payload = _format(lambda logger: logger.makeRecord(
        logger.name, logging.WARNING, __file__, 1, "rejected", (), (type(exc), exc, None),
    ))
    assert payload["exc_type"] == "TrialBalanceLockedError"
    assert payload["exc_code"] == exc.code
    assert payload["exc_tb_id"] == "tb-1"
