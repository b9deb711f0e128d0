"""
Consolidation Module Service (``consultflow_modules.consolidation.service``).

Responsibility
--------------
Builds report bundles for one or several companies in one reporting
currency, and maintains the records those reports read: monthly series per
company, consolidation adjustments and insights.

Architecture position
---------------------
**Modules layer** -- imperative shell.  Reads through the kernel services
(companies, CoA, trial balances, FX) and its own stores, then hands plain
values to the pure functions in ``series``, ``eliminations`` and
``consultflow_modules.reporting.statements``.

Invariants enforced
-------------------
* Report generation never writes.  Adjustments are applied to copies of
  the merged series; stored series are never changed by a report.
* Amounts are translated into the reporting currency at the rate recorded
  for the point's own date (TB balances: the TB's period end).
* Every fallback (rate 1.0, zero contribution, heuristic ratios) is
  reported as a ``DataGap`` next to the figures it affected.

Failure modes
-------------
* InvalidReportQueryError for a malformed range or inverted date bounds.
* InvalidConsolidationAdjustmentError for malformed adjustment input.
* InvalidCurrencyError for an unknown reporting currency.
* DuplicateRecordError when an adjustment id already exists.
* Missing rates, series, trial balances or prior snapshots are NOT errors.

Audit relevance
---------------
Structured log events for every report and every adjustment, series and
insight change, carrying the company selection and the fallback flags.
"""

from __future__ import annotations

import calendar
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence

from consultflow_kernel.domain.chart_of_accounts import accounts_by_code
from consultflow_kernel.domain.clock import Clock
from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.dtos import Account, Company, TrialBalance
from consultflow_kernel.domain.fx import DataGap, FxWarnings
from consultflow_kernel.domain.trial_balance import account_balances
from consultflow_kernel.domain.values import ZERO, to_decimal
from consultflow_kernel.exceptions import (
    DuplicateRecordError,
    InvalidConsolidationAdjustmentError,
)
from consultflow_kernel.logging_config import LogContext, get_logger
from consultflow_kernel.services.base import BaseService, new_id
from consultflow_kernel.services.coa_service import CoAService
from consultflow_kernel.services.company_service import CompanyService
from consultflow_kernel.services.fx_service import FxService
from consultflow_kernel.services.trial_balance_service import TrialBalanceService
from consultflow_kernel.storage.base import GLOBAL_SCOPE, CompanyScopedStore
from consultflow_modules.consolidation.eliminations import build_eliminations
from consultflow_modules.consolidation.insights import select_insights
from consultflow_modules.consolidation.models import (
    AdjustmentField,
    ConsolidationAdjustment,
    Insight,
    ReportBundle,
    ReportQuery,
    SeriesPoint,
    month_key,
    month_start,
)
from consultflow_modules.consolidation.series import (
    apply_adjustments,
    compute_kpis,
    filter_series,
    last_two,
    merge_series,
)
from consultflow_modules.reporting.config import ReportingConfig
from consultflow_modules.reporting.models import BalanceSheet, CashFlow
from consultflow_modules.reporting.statements import (
    build_balance_sheet_from_tb,
    build_cash_flow_from_tb,
    build_heuristic_balance_sheet,
    build_heuristic_cash_flow,
    compute_pl_from_balances,
)

logger = get_logger("modules.consolidation.service")


def _month_end(on: date) -> date:
    return on.replace(day=calendar.monthrange(on.year, on.month)[1])


def _parse_adjustment_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    try:
        if len(text) == 7:
            return date.fromisoformat(f"{text}-01")
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidConsolidationAdjustmentError(
            f"date {value!r} is not YYYY-MM or YYYY-MM-DD"
        ) from None


class ConsolidationService(BaseService[ConsolidationAdjustment]):
    """
    Contract:
        ``store`` holds every consolidation adjustment under
        ``GLOBAL_SCOPE``; ``series_store`` holds one series per company;
        ``insight_store`` holds every insight under ``GLOBAL_SCOPE``.

    Non-goals:
        Real inter-company matching; eliminations are ratio-based.
    """

    def __init__(
        self,
        store: CompanyScopedStore[ConsolidationAdjustment],
        series_store: CompanyScopedStore[SeriesPoint],
        insight_store: CompanyScopedStore[Insight],
        company_service: CompanyService,
        coa_service: CoAService,
        tb_service: TrialBalanceService,
        fx_service: FxService,
        config: ReportingConfig | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(store, clock)
        self._series = series_store
        self._insights = insight_store
        self._companies = company_service
        self._coa = coa_service
        self._tbs = tb_service
        self._fx = fx_service
        self.config = config or ReportingConfig.with_defaults()

    # -----------------------------------------------------------------
    # Series maintenance
    # -----------------------------------------------------------------

    def list_series(self, company_id: str) -> list[SeriesPoint]:
        return sorted(self._series.load(company_id), key=lambda p: p.date)

    def upsert_series(self, company_id: str, points: Sequence[SeriesPoint]) -> list[SeriesPoint]:
        """Insert or replace points by month; dates move to the first of the month."""
        incoming = {
            month_key(p.date): replace(p, date=month_start(p.date)) for p in points
        }

        def _upsert(existing: list[SeriesPoint]) -> list[SeriesPoint]:
            kept = [p for p in existing if month_key(p.date) not in incoming]
            return sorted(kept + list(incoming.values()), key=lambda p: p.date)

        result = self._series.update(company_id, _upsert)
        logger.info(
            "series_upserted",
            extra={"company_id": company_id, "count": len(incoming)},
        )
        return result

    # -----------------------------------------------------------------
    # Consolidation adjustments
    # -----------------------------------------------------------------

    def list_adjustments(
        self,
        companies: Sequence[str] | None = None,
    ) -> list[ConsolidationAdjustment]:
        """Adjustments in creation order, optionally those targeting ``companies``."""
        adjustments = self.store.load(GLOBAL_SCOPE)
        if companies:
            adjustments = [a for a in adjustments if a.targets_any(companies)]
        return sorted(
            adjustments,
            key=lambda a: (a.created_at is None, a.created_at or datetime.min, a.id),
        )

    def add_adjustment(
        self,
        companies: Sequence[str],
        on: date | str,
        field: AdjustmentField | str,
        delta: Decimal | int | str,
        note: str | None = None,
        adjustment_id: str | None = None,
    ) -> ConsolidationAdjustment:
        """
        Record a signed change to one series figure in one month.

        Raises:
            InvalidConsolidationAdjustmentError: No target company, unknown
                field, unreadable date or non-numeric delta.
            DuplicateRecordError: ``adjustment_id`` already exists.
        """
        targets = tuple(dict.fromkeys(c.strip() for c in companies if c and c.strip()))
        if not targets:
            raise InvalidConsolidationAdjustmentError("at least one company is required")
        try:
            field_value = AdjustmentField(field)
        except ValueError:
            raise InvalidConsolidationAdjustmentError(
                f"field must be one of {[f.value for f in AdjustmentField]}, got {field!r}"
            ) from None
        try:
            amount = to_decimal(delta)
        except ValueError:
            raise InvalidConsolidationAdjustmentError(f"delta {delta!r} is not a number") from None

        adjustment = ConsolidationAdjustment(
            id=adjustment_id or new_id(),
            companies=targets,
            date=_parse_adjustment_date(on),
            field=field_value,
            delta=amount,
            note=note,
            created_at=self._clock.now(),
        )

        def _insert(existing: list[ConsolidationAdjustment]) -> list[ConsolidationAdjustment]:
            if any(a.id == adjustment.id for a in existing):
                raise DuplicateRecordError("consolidation_adjustment", adjustment.id)
            return existing + [adjustment]

        self.store.update(GLOBAL_SCOPE, _insert)
        logger.info(
            "consolidation_adjustment_added",
            extra={
                "adjustment_id": adjustment.id,
                "companies": list(targets),
                "month": month_key(adjustment.date),
                "field": field_value.value,
                "delta": amount,
            },
        )
        return adjustment

    def delete_adjustment(self, adjustment_id: str) -> bool:
        removed = [False]

        def _delete(existing: list[ConsolidationAdjustment]) -> list[ConsolidationAdjustment]:
            kept = [a for a in existing if a.id != adjustment_id]
            removed[0] = len(kept) != len(existing)
            return kept

        self.store.update(GLOBAL_SCOPE, _delete)
        if removed[0]:
            logger.info(
                "consolidation_adjustment_deleted",
                extra={"adjustment_id": adjustment_id},
            )
        return removed[0]

    # -----------------------------------------------------------------
    # Insights
    # -----------------------------------------------------------------

    def upsert_insight(self, insight: Insight) -> Insight:
        """Insert or replace by id; ``created_at`` of an existing insight is kept."""
        if not insight.title.strip() or not insight.detail.strip():
            raise ValueError("insight title and detail are required")
        insight = replace(insight, id=insight.id or new_id())
        saved = [insight]

        def _upsert(existing: list[Insight]) -> list[Insight]:
            previous = next((i for i in existing if i.id == insight.id), None)
            created_at = (
                previous.created_at if previous is not None and previous.created_at
                else insight.created_at or self._clock.now()
            )
            saved[0] = replace(insight, created_at=created_at)
            return [i for i in existing if i.id != insight.id] + [saved[0]]

        self._insights.update(GLOBAL_SCOPE, _upsert)
        logger.info(
            "insight_upserted",
            extra={"insight_id": saved[0].id, "company_id": saved[0].company_id},
        )
        return saved[0]

    def deactivate_insight(self, insight_id: str) -> bool:
        found = [False]

        def _deactivate(existing: list[Insight]) -> list[Insight]:
            result = []
            for i in existing:
                if i.id == insight_id:
                    found[0] = True
                    i = replace(i, is_active=False)
                result.append(i)
            return result

        self._insights.update(GLOBAL_SCOPE, _deactivate)
        return found[0]

    def list_insights(
        self,
        companies: Sequence[str] | None = None,
        limit: int = 10,
    ) -> list[Insight]:
        return list(select_insights(self._insights.load(GLOBAL_SCOPE), companies, limit))

    # -----------------------------------------------------------------
    # Reports
    # -----------------------------------------------------------------

    def _selected_companies(self, query: ReportQuery) -> tuple[list[str], list[Company]]:
        ids = query.company_ids()
        if not ids:
            companies = self._companies.list_companies(active_only=True)
            return [c.id for c in companies], companies
        found = [self._companies.find_company(cid) for cid in ids]
        return ids, [c for c in found if c is not None]

    def _base_currency(self, company_id: str, companies: dict[str, Company], fallback: str) -> str:
        company = companies.get(company_id)
        return company.currency if company is not None else fallback

    def _translated_series(
        self,
        company_id: str,
        base: str,
        currency: str,
        warnings: FxWarnings,
    ) -> list[SeriesPoint]:
        translated: list[SeriesPoint] = []
        for point in self.list_series(company_id):
            amounts = [
                warnings.record(
                    self._fx.translate_from_base(company_id, amount, base, currency, point.date),
                    company_id=company_id,
                    currency=currency,
                    on=point.date,
                ).converted
                for amount in (point.revenue, point.cogs, point.expenses, point.cash)
            ]
            translated.append(SeriesPoint(point.date, *amounts))
        return translated

    def _translated_balances(
        self,
        tb: TrialBalance,
        base: str,
        currency: str,
        warnings: FxWarnings,
    ) -> dict[str, Decimal]:
        balances: dict[str, Decimal] = {}
        for code, amount in account_balances(tb, include_adjustments=True).items():
            conversion = self._fx.translate_from_base(
                tb.company_id, amount, tb.currency or base, currency, tb.period_end,
            )
            warnings.record(
                conversion, company_id=tb.company_id, currency=currency, on=tb.period_end,
            )
            balances[code] = conversion.converted
        return balances

    @staticmethod
    def _add_balances(total: dict[str, Decimal], more: dict[str, Decimal]) -> None:
        for code, amount in more.items():
            total[code] = total.get(code, ZERO) + amount

    def get_reports(self, query: ReportQuery) -> ReportBundle:
        """
        Build the report bundle for the selected companies.

        Steps:
        1. Translate and merge the company series by month.
        2. Apply targeted consolidation adjustments (cash recomputed).
        3. Filter by from/to or range; KPIs from the last two periods.
        4. Balance sheet and cash flow from trial balances when available,
           otherwise from the last period with heuristic ratios.
        5. Eliminations when more than one company is selected.
        """
        config = self.config
        currency = CurrencyRegistry.normalize(query.currency or config.default_currency)
        ids, companies = self._selected_companies(query)
        by_id = {c.id: c for c in companies}
        warnings = FxWarnings()
        gaps: list[DataGap] = []

        with LogContext.bind(company_id=",".join(ids)):
            # 1. series
            per_company: list[list[SeriesPoint]] = []
            for cid in ids:
                base = self._base_currency(cid, by_id, currency)
                points = self._translated_series(cid, base, currency, warnings)
                if not points:
                    gaps.append(DataGap(
                        kind="missing_series",
                        company_id=cid,
                        detail="No series data; contributes zero",
                    ))
                per_company.append(points)
            merged = merge_series(per_company)

            # 2. adjustments
            adjusted = apply_adjustments(merged, self.list_adjustments(ids), ids)

            # 3. filter and KPIs
            filtered = filter_series(adjusted, query.from_date, query.to_date, query.range)
            last, prev = last_two(filtered, adjusted)
            kpis = compute_kpis(last, prev)

            # 4. statements
            as_of = last.date if last is not None else None
            balance_sheet, cashflow = self._statements(
                ids, by_id, currency, last, filtered or adjusted, warnings, gaps,
            )

            # 5. eliminations
            eliminations = None
            if len(ids) > 1:
                revenue = sum((p.revenue for p in filtered), ZERO)
                net_income = sum((p.net_income for p in filtered), ZERO)
                eliminations = build_eliminations(revenue, net_income, config.eliminations)

            insights = self.list_insights(ids, config.insight_limit)
            all_gaps = tuple(warnings.gaps) + tuple(gaps)

            if warnings.fallback_used:
                logger.warning(
                    "report_fx_fallback_used",
                    extra={
                        "currency": currency,
                        "missing": sorted({
                            f"{g.company_id}:{g.on.isoformat()}"
                            for g in warnings.gaps if g.on is not None
                        }),
                    },
                )
            logger.info(
                "reports_generated",
                extra={
                    "companies": ids,
                    "currency": currency,
                    "periods": len(filtered),
                    "as_of": as_of,
                    "balance_sheet_source": balance_sheet.source.value,
                    "cashflow_source": cashflow.source.value,
                    "data_gaps": len(all_gaps),
                    "fx_fallback_used": warnings.fallback_used,
                },
            )

        return ReportBundle(
            companies=tuple(companies),
            currency=currency,
            kpis=kpis,
            series=filtered,
            balance_sheet=balance_sheet,
            cashflow=cashflow,
            insights=tuple(insights),
            eliminations=eliminations,
            fx_fallback_used=warnings.fallback_used,
            data_gaps=all_gaps,
        )

    def _statements(
        self,
        ids: list[str],
        by_id: dict[str, Company],
        currency: str,
        last: SeriesPoint | None,
        window: Sequence[SeriesPoint],
        warnings: FxWarnings,
        gaps: list[DataGap],
    ) -> tuple[BalanceSheet, CashFlow]:
        config = self.config
        as_of = last.date if last is not None else None
        cutoff = _month_end(as_of) if as_of is not None else None
        from_date = window[0].date if window else None
        point = last or SeriesPoint(date=date.min)

        current: dict[str, Decimal] = {}
        prior: dict[str, Decimal] = {}
        accounts: dict[str, Account] = {}
        with_tb = 0
        with_prior = 0
        without_tb: list[str] = []
        for cid in ids:
            tb = self._tbs.latest_tb(cid, on_or_before=cutoff)
            if tb is None:
                without_tb.append(cid)
                continue
            with_tb += 1
            base = self._base_currency(cid, by_id, currency)
            for code, acct in accounts_by_code(self._coa.list_coa(cid)).items():
                accounts.setdefault(code, acct)
            self._add_balances(current, self._translated_balances(tb, base, currency, warnings))
            earlier = self._tbs.latest_tb(cid, on_or_before=tb.period_start)
            if earlier is not None and earlier.id != tb.id and earlier.period_end < tb.period_end:
                with_prior += 1
                self._add_balances(prior, self._translated_balances(earlier, base, currency, warnings))
            else:
                gaps.append(DataGap(
                    kind="missing_prior_snapshot",
                    company_id=cid,
                    on=tb.period_end,
                    detail="No earlier trial balance; cash flow uses heuristic ratios",
                ))

        if with_tb:
            for cid in without_tb:
                gaps.append(DataGap(
                    kind="missing_trial_balance",
                    company_id=cid,
                    on=as_of,
                    detail="No trial balance; balance sheet omits this company",
                ))
            balance_sheet = build_balance_sheet_from_tb(current, accounts, as_of, config)
        else:
            balance_sheet = build_heuristic_balance_sheet(
                point.revenue, point.cogs, point.expenses, point.cash, as_of, config.heuristics,
            )

        if with_tb and with_prior == with_tb:
            pl = compute_pl_from_balances(current, accounts)
            cashflow = build_cash_flow_from_tb(
                current, prior, accounts, pl.net_income, pl.revenue, from_date, as_of, config,
            )
        else:
            if not with_tb:
                gaps.append(DataGap(
                    kind="missing_prior_snapshot",
                    on=as_of,
                    detail="No trial balance snapshots; cash flow uses heuristic ratios",
                ))
            cashflow = build_heuristic_cash_flow(
                point.revenue, point.cogs, point.expenses, from_date, as_of, config.cash_flow,
            )
        return balance_sheet, cashflow
