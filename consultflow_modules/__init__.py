"""
ConsultFlow Modules.

Read-side layers over the kernel:

- reporting: P&L, balance sheet and cash flow derivation
- consolidation: multi-company series, adjustments, KPIs, eliminations
"""

from consultflow_modules import consolidation, reporting

__all__ = [
    "consolidation",
    "reporting",
]
