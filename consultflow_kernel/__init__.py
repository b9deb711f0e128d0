"""
ConsultFlow Kernel

Multi-entity reporting core shared by the ingestion and reporting layers:
- Chart of accounts validation and hierarchy
- Trial balance lifecycle with adjustments
- Currency conversion with explicit fallback flags
- Company-scoped, atomic record stores
- Append-only, hash-chained audit log
"""

__version__ = "0.1.0"
