"""
FxService -- per-company exchange rates and conversion with fallback.

Responsibility:
    Stores the rates a company records (one collection per company),
    resolves a rate by exact (target currency, date) match, and converts
    amounts into the company base currency with the fallback policy of
    ``consultflow_kernel.domain.fx``.

Rate convention:
    ``rate`` is base units per one unit of ``target``.  Converting a foreign
    amount into base multiplies; translating a base amount into ``target``
    divides.

Invariants enforced:
    - No interpolation or nearest-date lookup.
    - Rates are strictly positive and reference known currencies.

Failure modes:
    - InvalidExchangeRateError / InvalidCurrencyError on upsert.
    - A missing rate is NOT an error: conversion falls back to 1.0 and sets
      ``fallback_used``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.dtos import ExchangeRate
from consultflow_kernel.domain.fx import FxConversion, convert, translate
from consultflow_kernel.domain.values import ZERO, round_money
from consultflow_kernel.exceptions import ExchangeRateNotFoundError, InvalidExchangeRateError
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.base import BaseService

logger = get_logger("services.fx")


class FxService(BaseService[ExchangeRate]):
    def list_exchange_rates(self, company_id: str) -> list[ExchangeRate]:
        return sorted(
            self.store.load(company_id),
            key=lambda r: (r.date, r.target, r.id),
        )

    def upsert_exchange_rate(self, company_id: str, rate: ExchangeRate) -> ExchangeRate:
        """
        Insert or replace a rate by id.

        Raises:
            InvalidExchangeRateError: If the rate is not strictly positive.
            InvalidCurrencyError: If base or target is unknown.
        """
        if not isinstance(rate.rate, Decimal) or not rate.rate.is_finite():
            raise InvalidExchangeRateError(str(rate.rate), "rate must be a finite Decimal")
        if rate.rate <= ZERO:
            raise InvalidExchangeRateError(str(rate.rate), "rate must be positive")
        base = CurrencyRegistry.normalize(rate.base)
        target = CurrencyRegistry.normalize(rate.target)
        if base == target and rate.rate != Decimal("1"):
            raise InvalidExchangeRateError(
                str(rate.rate), "same-currency rate must be 1"
            )
        rate = replace(
            rate,
            base=base,
            target=target,
            created_at=rate.created_at or self._clock.now(),
        )

        def _upsert(rates: list[ExchangeRate]) -> list[ExchangeRate]:
            return [r for r in rates if r.id != rate.id] + [rate]

        self.store.update(company_id, _upsert)
        logger.info(
            "exchange_rate_upserted",
            extra={
                "company_id": company_id,
                "rate_id": rate.id,
                "target": rate.target,
                "date": rate.date,
                "rate": rate.rate,
            },
        )
        return rate

    def get_exchange_rate(self, company_id: str, rate_id: str) -> ExchangeRate:
        """
        Raises:
            ExchangeRateNotFoundError: If the company has no rate with this id.
        """
        for rate in self.store.load(company_id):
            if rate.id == rate_id:
                return rate
        raise ExchangeRateNotFoundError(company_id, rate_id)

    def delete_exchange_rate(self, company_id: str, rate_id: str) -> bool:
        """Remove a rate by id; returns False if there was none."""
        removed: list[bool] = []

        def _delete(rates: list[ExchangeRate]) -> list[ExchangeRate]:
            kept = [r for r in rates if r.id != rate_id]
            removed.append(len(kept) != len(rates))
            return kept

        self.store.update(company_id, _delete)
        if removed[0]:
            logger.info(
                "exchange_rate_deleted",
                extra={"company_id": company_id, "rate_id": rate_id},
            )
        return removed[0]

    def find_rate(self, company_id: str, target: str, on: date) -> ExchangeRate | None:
        """Exact match on (target, date); the latest-recorded wins on duplicates."""
        if not CurrencyRegistry.is_valid(target):
            return None
        target = CurrencyRegistry.normalize(target)
        match: ExchangeRate | None = None
        for rate in self.store.load(company_id):
            if rate.target == target and rate.date == on:
                match = rate
        return match

    def convert_to_base(
        self,
        company_id: str,
        amount: Decimal,
        currency: str | None,
        base_currency: str,
        on: date,
    ) -> FxConversion:
        """
        Convert ``amount`` in ``currency`` into ``base_currency``.

        Same-currency (or unspecified-currency) amounts pass through at rate
        1 without a fallback flag.
        """
        if currency is None or _same_currency(currency, base_currency):
            return FxConversion(amount, round_money(amount), Decimal("1"), False)
        conversion = convert(amount, self.find_rate(company_id, currency, on))
        if conversion.fallback_used:
            logger.warning(
                "fx_fallback_used",
                extra={
                    "company_id": company_id,
                    "currency": currency,
                    "base_currency": base_currency,
                    "date": on,
                },
            )
        return conversion

    def translate_from_base(
        self,
        company_id: str,
        amount: Decimal,
        base_currency: str,
        target_currency: str,
        on: date,
    ) -> FxConversion:
        """Translate a base-currency amount into ``target_currency``."""
        if _same_currency(base_currency, target_currency):
            return FxConversion(amount, round_money(amount), Decimal("1"), False)
        conversion = translate(amount, self.find_rate(company_id, target_currency, on))
        if conversion.fallback_used:
            logger.warning(
                "fx_fallback_used",
                extra={
                    "company_id": company_id,
                    "currency": target_currency,
                    "base_currency": base_currency,
                    "date": on,
                },
            )
        return conversion


def _same_currency(a: str, b: str) -> bool:
    if CurrencyRegistry.is_valid(a) and CurrencyRegistry.is_valid(b):
        return CurrencyRegistry.normalize(a) == CurrencyRegistry.normalize(b)
    return a.strip().upper() == b.strip().upper()
