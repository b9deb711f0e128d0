"""JSON-safe codecs for the consolidation records (same conventions as the kernel codecs)."""

from __future__ import annotations

from typing import Any

from consultflow_kernel.storage.base import RecordCodec
from consultflow_kernel.storage.codecs import date_in, date_out, dec_in, dec_out, dt_in, dt_out
from consultflow_modules.consolidation.models import (
    AdjustmentField,
    ConsolidationAdjustment,
    Insight,
    InsightSeverity,
    SeriesPoint,
)


class SeriesPointCodec(RecordCodec[SeriesPoint]):
    def encode(self, record: SeriesPoint) -> dict[str, Any]:
        return {
            "date": date_out(record.date),
            "revenue": dec_out(record.revenue),
            "cogs": dec_out(record.cogs),
            "expenses": dec_out(record.expenses),
            "cash": dec_out(record.cash),
        }

    def decode(self, data: dict[str, Any]) -> SeriesPoint:
        return SeriesPoint(
            date=date_in(data["date"]),
            revenue=dec_in(data["revenue"]),
            cogs=dec_in(data["cogs"]),
            expenses=dec_in(data["expenses"]),
            cash=dec_in(data["cash"]),
        )


class ConsolidationAdjustmentCodec(RecordCodec[ConsolidationAdjustment]):
    def encode(self, record: ConsolidationAdjustment) -> dict[str, Any]:
        return {
            "id": record.id,
            "companies": list(record.companies),
            "date": date_out(record.date),
            "field": record.field.value,
            "delta": dec_out(record.delta),
            "note": record.note,
            "created_at": dt_out(record.created_at),
        }

    def decode(self, data: dict[str, Any]) -> ConsolidationAdjustment:
        return ConsolidationAdjustment(
            id=data["id"],
            companies=tuple(data["companies"]),
            date=date_in(data["date"]),
            field=AdjustmentField(data["field"]),
            delta=dec_in(data["delta"]),
            note=data.get("note"),
            created_at=dt_in(data.get("created_at")),
        )


class InsightCodec(RecordCodec[Insight]):
    def encode(self, record: Insight) -> dict[str, Any]:
        return {
            "id": record.id,
            "title": record.title,
            "detail": record.detail,
            "severity": record.severity.value,
            "company_id": record.company_id,
            "created_at": dt_out(record.created_at),
            "is_active": record.is_active,
        }

    def decode(self, data: dict[str, Any]) -> Insight:
        return Insight(
            id=data["id"],
            title=data["title"],
            detail=data["detail"],
            severity=InsightSeverity(data["severity"]),
            company_id=data.get("company_id"),
            created_at=dt_in(data.get("created_at")),
            is_active=data.get("is_active", True),
        )
