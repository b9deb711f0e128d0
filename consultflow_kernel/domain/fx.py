"""
FX -- currency conversion with an explicit fallback flag.

Responsibility:
    Convert amounts with a looked-up rate, or with the fallback rate 1.0 when
    no rate exists.  A fallback is never silent: every conversion reports
    ``fallback_used`` and callers collect ``DataGap`` records so the user can
    be warned that a figure is unconverted.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Rate lookup lives in
    ``FxService``; this module only does arithmetic.

Invariants enforced:
    - Never raises for a missing rate; never invents a rate other than 1.
    - Converted amounts are rounded to 2 decimal places, ROUND_HALF_UP.
    - A rate of zero or less is never applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from consultflow_kernel.domain.dtos import ExchangeRate
from consultflow_kernel.domain.values import ZERO, round_money

FALLBACK_RATE = Decimal("1")


@dataclass(frozen=True)
class FxConversion:
    original: Decimal
    converted: Decimal
    rate: Decimal
    fallback_used: bool


@dataclass(frozen=True)
class DataGap:
    """
    A missing input that was replaced by a documented fallback.

    ``kind`` is one of ``missing_rate``, ``missing_series``,
    ``missing_prior_snapshot`` or ``missing_trial_balance``.
    """

    kind: str
    company_id: str | None = None
    currency: str | None = None
    on: date | None = None
    detail: str = ""


def _usable(rate: ExchangeRate | Decimal | None) -> Decimal | None:
    if rate is None:
        return None
    value = rate.rate if isinstance(rate, ExchangeRate) else rate
    if value <= ZERO:
        return None
    return value


def convert(amount: Decimal, rate: ExchangeRate | Decimal | None) -> FxConversion:
    """
    Convert ``amount`` into the base currency by multiplying with ``rate``.

    With no usable rate the fallback rate 1.0 is applied and
    ``fallback_used`` is True.
    """
    value = _usable(rate)
    if value is None:
        return FxConversion(
            original=amount,
            converted=round_money(amount * FALLBACK_RATE),
            rate=FALLBACK_RATE,
            fallback_used=True,
        )
    return FxConversion(
        original=amount,
        converted=round_money(amount * value),
        rate=value,
        fallback_used=False,
    )


def translate(amount: Decimal, rate: ExchangeRate | Decimal | None) -> FxConversion:
    """
    Translate a base-currency ``amount`` into the rate's ``target`` currency.

    The inverse of ``convert``: divides by the rate.  Same fallback rules.
    """
    value = _usable(rate)
    if value is None:
        return convert(amount, None)
    return FxConversion(
        original=amount,
        converted=round_money(amount / value),
        rate=Decimal("1") / value,
        fallback_used=False,
    )


@dataclass
class FxWarnings:
    """Collects fallback usage across a batch of conversions."""

    gaps: list[DataGap] = field(default_factory=list)

    @property
    def fallback_used(self) -> bool:
        return any(g.kind == "missing_rate" for g in self.gaps)

    def record(
        self,
        conversion: FxConversion,
        *,
        company_id: str | None,
        currency: str,
        on: date,
    ) -> FxConversion:
        if conversion.fallback_used:
            gap = DataGap(
                kind="missing_rate",
                company_id=company_id,
                currency=currency,
                on=on,
                detail=f"No {currency} rate on {on.isoformat()}; used 1.0",
            )
            if gap not in self.gaps:
                self.gaps.append(gap)
        return conversion
