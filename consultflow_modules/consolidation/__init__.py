"""
Consolidation Module (``consultflow_modules.consolidation``).

Responsibility
--------------
Aggregates per-company monthly series into one reporting currency, applies
month-bucketed consolidation adjustments, derives KPIs and statements, and
adds ratio-based elimination entries for multi-company views.

Architecture position
---------------------
**Modules layer** -- ``ConsolidationService`` is the entry point; the
``series``, ``eliminations`` and ``insights`` modules are pure.

Invariants enforced
-------------------
* Reports never mutate stored series or adjustments.
* Cash is a running balance; an adjustment in month M moves cash by its
  net-income effect from M onward and leaves earlier periods unchanged.

Failure modes
-------------
* Missing inputs degrade to documented fallbacks reported as ``DataGap``.
"""

from consultflow_modules.consolidation.codecs import (
    ConsolidationAdjustmentCodec,
    InsightCodec,
    SeriesPointCodec,
)
from consultflow_modules.consolidation.eliminations import build_eliminations
from consultflow_modules.consolidation.insights import select_insights
from consultflow_modules.consolidation.models import (
    KPI,
    AdjustmentField,
    ConsolidationAdjustment,
    EliminationEntry,
    EliminationSummary,
    Insight,
    InsightSeverity,
    ReportBundle,
    ReportQuery,
    SeriesPoint,
)
from consultflow_modules.consolidation.series import (
    apply_adjustments,
    compute_kpis,
    filter_series,
    merge_series,
)
from consultflow_modules.consolidation.service import ConsolidationService

__all__ = [
    # Service
    "ConsolidationService",
    # Models
    "AdjustmentField",
    "ConsolidationAdjustment",
    "EliminationEntry",
    "EliminationSummary",
    "Insight",
    "InsightSeverity",
    "KPI",
    "ReportBundle",
    "ReportQuery",
    "SeriesPoint",
    # Codecs
    "ConsolidationAdjustmentCodec",
    "InsightCodec",
    "SeriesPointCodec",
    # Pure functions
    "apply_adjustments",
    "build_eliminations",
    "compute_kpis",
    "filter_series",
    "merge_series",
    "select_insights",
]
