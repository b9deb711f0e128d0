"""Every consultflow error carries a machine-readable code."""

import pytest

from consultflow_kernel import exceptions
from consultflow_kernel.exceptions import (
    AdjustmentSidesError,
    ConsultflowError,
    InvalidReportQueryError,
    NotFoundError,
    StateError,
    TrialBalanceLockedError,
    ValidationError,
)


def _error_classes():
    return [
        obj for obj in vars(exceptions).values()
        if isinstance(obj, type) and issubclass(obj, ConsultflowError)
    ]


@pytest.mark.parametrize("cls", _error_classes(), ids=lambda c: c.__name__)
def test_every_error_has_a_code(cls):
    assert isinstance(cls.code, str) and cls.code


def test_codes_are_unique():
    codes = [cls.code for cls in _error_classes()]
    assert len(codes) == len(set(codes))


def test_hierarchy():
    assert issubclass(AdjustmentSidesError, ValidationError)
    assert issubclass(InvalidReportQueryError, ValidationError)
    assert issubclass(TrialBalanceLockedError, StateError)
    assert not issubclass(NotFoundError, ValidationError)


def test_locked_error_carries_context():
    exc = TrialBalanceLockedError("tb-1", "locked", "add adjustment")
    assert exc.tb_id == "tb-1"
    assert "locked" in str(exc)
