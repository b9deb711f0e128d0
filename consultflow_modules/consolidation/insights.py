"""Insight selection for report bundles.  Pure, ZERO I/O."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from consultflow_modules.consolidation.models import Insight


def select_insights(
    insights: Iterable[Insight],
    company_ids: Sequence[str] | None = None,
    limit: int = 10,
) -> tuple[Insight, ...]:
    """
    Active insights, newest first, at most ``limit``.

    With ``company_ids``, only global insights and those of the listed
    companies are kept.
    """
    if limit <= 0:
        return ()
    wanted = set(company_ids) if company_ids else None
    kept = [
        i for i in insights
        if i.is_active
        and (wanted is None or i.company_id is None or i.company_id in wanted)
    ]
    kept.sort(key=lambda i: (i.created_at is not None, i.created_at or datetime.min, i.id), reverse=True)
    return tuple(kept[:limit])
