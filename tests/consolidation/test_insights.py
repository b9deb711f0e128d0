"""Tests for insight selection."""

from datetime import datetime, timezone

from consultflow_modules.consolidation.insights import select_insights
from consultflow_modules.consolidation.models import Insight, InsightSeverity


def _insight(insight_id, hour, company_id=None, is_active=True):
    return Insight(
        id=insight_id,
        title=f"Title {insight_id}",
        detail="detail",
        severity=InsightSeverity.MEDIUM,
        company_id=company_id,
        created_at=datetime(2024, 6, 1, hour, tzinfo=timezone.utc),
        is_active=is_active,
    )


INSIGHTS = [
    _insight("global", 8),
    _insight("lagos", 10, company_id="lagos"),
    _insight("nairobi", 9, company_id="nairobi"),
    _insight("stale", 11, company_id="lagos", is_active=False),
]


def test_newest_first_and_active_only():
    assert [i.id for i in select_insights(INSIGHTS)] == ["lagos", "nairobi", "global"]


def test_company_filter_keeps_global():
    assert [i.id for i in select_insights(INSIGHTS, ["lagos"])] == ["lagos", "global"]


def test_limit():
    assert [i.id for i in select_insights(INSIGHTS, limit=1)] == ["lagos"]
    assert select_insights(INSIGHTS, limit=0) == ()


def test_undated_insights_sort_last():
    undated = Insight(id="undated", title="t", detail="d")
    assert select_insights([undated, *INSIGHTS])[-1].id == "undated"
