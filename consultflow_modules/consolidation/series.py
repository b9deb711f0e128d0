"""
Pure series functions: merge, adjust, recompute cash, filter, KPIs.

ZERO I/O.  Every function returns new tuples of frozen ``SeriesPoint``s and
never mutates its inputs, so applying the same adjustments to two copies of
a series always yields identical results.

Cash handling:
    ``cash`` is a running balance.  After adjustments, each period's cash is
    its unadjusted cash plus the cumulative net-income effect of every
    adjustment up to and including that period.  A synthesized period has
    no cash of its own and carries the previous period's unadjusted cash,
    or the opening balance implied by the first unadjusted period
    (``cash - net_income``) when it precedes all data.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from consultflow_kernel.domain.values import ZERO, pct_change
from consultflow_kernel.exceptions import InvalidReportQueryError
from consultflow_modules.consolidation.models import (
    KPI,
    ConsolidationAdjustment,
    SeriesPoint,
    month_key,
    month_start,
)


def merge_series(per_company: Iterable[Sequence[SeriesPoint]]) -> tuple[SeriesPoint, ...]:
    """Sum points of several companies by month; sorted by date."""
    buckets: dict[str, SeriesPoint] = {}
    for points in per_company:
        for point in points:
            key = month_key(point.date)
            current = buckets.get(key)
            if current is None:
                buckets[key] = SeriesPoint(
                    date=month_start(point.date),
                    revenue=point.revenue,
                    cogs=point.cogs,
                    expenses=point.expenses,
                    cash=point.cash,
                )
            else:
                buckets[key] = current.plus(point)
    return tuple(sorted(buckets.values(), key=lambda p: p.date))


def apply_adjustments(
    series: Sequence[SeriesPoint],
    adjustments: Iterable[ConsolidationAdjustment],
    company_ids: Sequence[str],
) -> tuple[SeriesPoint, ...]:
    """
    Add each targeted adjustment's delta to its month bucket.

    Adjustments apply in ``created_at`` order.  A month with no bucket gets a
    zero-valued bucket on its first day.  Cash is recomputed afterwards.
    """
    buckets: dict[str, SeriesPoint] = {month_key(p.date): p for p in series}
    effects: dict[str, Decimal] = {}
    ordered = sorted(
        adjustments,
        key=lambda a: (a.created_at is None, a.created_at or datetime.min, a.id),
    )
    for adj in ordered:
        if not adj.targets_any(company_ids):
            continue
        key = month_key(adj.date)
        bucket = buckets.get(key) or SeriesPoint(date=month_start(adj.date))
        buckets[key] = bucket.adjusted(adj.field, adj.delta)
        effects[key] = effects.get(key, ZERO) + adj.cash_effect
    adjusted = sorted(buckets.values(), key=lambda p: p.date)
    return recompute_cash(series, adjusted, effects)


def opening_cash(series: Sequence[SeriesPoint]) -> Decimal:
    """Cash before the first period: its cash less its net income."""
    if not series:
        return ZERO
    first = min(series, key=lambda p: p.date)
    return first.cash - first.net_income


def recompute_cash(
    unadjusted: Sequence[SeriesPoint],
    adjusted: Sequence[SeriesPoint],
    effects: dict[str, Decimal],
) -> tuple[SeriesPoint, ...]:
    """Roll the cumulative adjustment effects forward through ``adjusted``."""
    stored = {month_key(p.date): p.cash for p in unadjusted}
    carried = opening_cash(unadjusted)
    cumulative = ZERO
    result: list[SeriesPoint] = []
    for point in sorted(adjusted, key=lambda p: p.date):
        key = month_key(point.date)
        if key in stored:
            carried = stored[key]
        cumulative += effects.get(key, ZERO)
        result.append(
            SeriesPoint(
                date=point.date,
                revenue=point.revenue,
                cogs=point.cogs,
                expenses=point.expenses,
                cash=carried + cumulative,
            )
        )
    return tuple(result)


def _months_back(on: date, months: int) -> date:
    month_index = on.year * 12 + (on.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(on.day, calendar.monthrange(year, month + 1)[1])
    return date(year, month + 1, day)


def range_start(last: date, range_value: str | None) -> date | None:
    """
    First date (inclusive) kept by a trailing ``range`` ending at ``last``.

    None keeps everything.

    Raises:
        InvalidReportQueryError: For an unrecognised range.
    """
    text = (range_value or "").strip().lower()
    if text in ("", "all"):
        return None
    if text == "ytd":
        return date(last.year, 1, 1)
    unit = "d"
    if text[-1] in ("d", "m"):
        text, unit = text[:-1], text[-1]
    if not text.isdigit() or int(text) <= 0:
        raise InvalidReportQueryError(
            "range", range_value, "expected all, ytd, N, Nd or Nm with N > 0",
        )
    if unit == "m":
        return _months_back(last, int(text)) + timedelta(days=1)
    return last - timedelta(days=int(text) - 1)


def filter_series(
    series: Sequence[SeriesPoint],
    from_date: date | None = None,
    to_date: date | None = None,
    range_value: str | None = None,
) -> tuple[SeriesPoint, ...]:
    """
    Keep points inside inclusive ``[from_date, to_date]``.

    Without explicit bounds, ``range_value`` trims to a trailing window
    ending at the last period.
    """
    if from_date and to_date and from_date > to_date:
        raise InvalidReportQueryError(
            "from", from_date.isoformat(), f"after to {to_date.isoformat()}",
        )
    if from_date is None and to_date is None:
        if not series:
            return ()
        start = range_start(max(p.date for p in series), range_value)
        if start is None:
            return tuple(series)
        return tuple(p for p in series if p.date >= start)
    return tuple(
        p for p in series
        if (from_date is None or p.date >= from_date)
        and (to_date is None or p.date <= to_date)
    )


def last_two(
    filtered: Sequence[SeriesPoint],
    merged: Sequence[SeriesPoint],
) -> tuple[SeriesPoint | None, SeriesPoint | None]:
    """
    The latest period and the one before it.

    Falls back to the merged series when the filter leaves fewer than two
    points; ``prev`` is ``last`` when there is nothing earlier.
    """
    last = filtered[-1] if filtered else (merged[-1] if merged else None)
    if len(filtered) >= 2:
        prev = filtered[-2]
    elif len(merged) >= 2:
        prev = merged[-2]
    else:
        prev = last
    return last, prev


def compute_kpis(last: SeriesPoint | None, prev: SeriesPoint | None) -> tuple[KPI, ...]:
    """Revenue, gross profit, net income, cash balance and burn rate."""
    last = last or SeriesPoint(date=date.min)
    prev = prev or last

    def _kpi(key: str, label: str, current: Decimal, previous: Decimal) -> KPI:
        return KPI(key=key, label=label, value=current, delta=pct_change(current, previous))

    burn = ZERO - max(ZERO, last.expenses - last.gross_profit)
    return (
        _kpi("revenue", "Revenue", last.revenue, prev.revenue),
        _kpi("grossProfit", "Gross Profit", last.gross_profit, prev.gross_profit),
        _kpi("netIncome", "Net Income", last.net_income, prev.net_income),
        _kpi("cashBalance", "Cash Balance", last.cash, prev.cash),
        KPI(key="burnRate", label="Burn Rate", value=burn, delta=Decimal("0.0")),
    )
