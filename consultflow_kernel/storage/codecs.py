"""
Record codecs -- JSON-safe encoding of kernel records.

Decimals travel as strings so no precision is lost; dates and datetimes as
ISO-8601 strings; enums as their values.  Decoding is the exact inverse, so a
round-trip through any store leaves every record equal to the original.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from consultflow_kernel.domain.dtos import (
    Account,
    AccountType,
    AuditAction,
    AuditEntity,
    AuditEvent,
    Company,
    ExchangeRate,
    JournalTransaction,
    LearnedMapping,
    TransactionSource,
    TrialBalance,
    TrialBalanceAdjustment,
    TrialBalanceEntry,
    TrialBalanceStatus,
)
from consultflow_kernel.storage.base import RecordCodec

# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def dec_out(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def dec_in(value: str | None) -> Decimal | None:
    return None if value is None else Decimal(value)


def date_out(value: date | None) -> str | None:
    return None if value is None else value.isoformat()


def date_in(value: str | None) -> date | None:
    return None if value is None else date.fromisoformat(value)


def dt_out(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def dt_in(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


class CompanyCodec(RecordCodec[Company]):
    def encode(self, record: Company) -> dict[str, Any]:
        return {
            "id": record.id,
            "name": record.name,
            "currency": record.currency,
            "is_active": record.is_active,
        }

    def decode(self, data: dict[str, Any]) -> Company:
        return Company(
            id=data["id"],
            name=data["name"],
            currency=data["currency"],
            is_active=data.get("is_active", True),
        )


class AccountCodec(RecordCodec[Account]):
    def encode(self, record: Account) -> dict[str, Any]:
        return {
            "id": record.id,
            "company_id": record.company_id,
            "account_code": record.account_code,
            "account_name": record.account_name,
            "account_type": record.account_type.value,
            "parent_account_id": record.parent_account_id,
            "currency": record.currency,
            "is_active": record.is_active,
        }

    def decode(self, data: dict[str, Any]) -> Account:
        return Account(
            id=data["id"],
            company_id=data["company_id"],
            account_code=data["account_code"],
            account_name=data["account_name"],
            account_type=AccountType(data["account_type"]),
            parent_account_id=data.get("parent_account_id"),
            currency=data.get("currency"),
            is_active=data.get("is_active", True),
        )


def _encode_entry(entry: TrialBalanceEntry) -> dict[str, Any]:
    return {
        "account_code": entry.account_code,
        "debit": dec_out(entry.debit),
        "credit": dec_out(entry.credit),
        "currency": entry.currency,
        "name": entry.name,
        "original_debit": dec_out(entry.original_debit),
        "original_credit": dec_out(entry.original_credit),
        "fx_rate_to_base": dec_out(entry.fx_rate_to_base),
    }


def _decode_entry(data: dict[str, Any]) -> TrialBalanceEntry:
    return TrialBalanceEntry(
        account_code=data["account_code"],
        debit=dec_in(data["debit"]),
        credit=dec_in(data["credit"]),
        currency=data.get("currency"),
        name=data.get("name"),
        original_debit=dec_in(data.get("original_debit")),
        original_credit=dec_in(data.get("original_credit")),
        fx_rate_to_base=dec_in(data.get("fx_rate_to_base")),
    )


def _encode_adjustment(adj: TrialBalanceAdjustment) -> dict[str, Any]:
    return {
        "id": adj.id,
        "tb_id": adj.tb_id,
        "account_code": adj.account_code,
        "debit": dec_out(adj.debit),
        "credit": dec_out(adj.credit),
        "reason": adj.reason,
        "created_by": adj.created_by,
        "created_at": dt_out(adj.created_at),
        "currency": adj.currency,
        "original_debit": dec_out(adj.original_debit),
        "original_credit": dec_out(adj.original_credit),
        "fx_rate_to_base": dec_out(adj.fx_rate_to_base),
        "fx_fallback_used": adj.fx_fallback_used,
    }


def _decode_adjustment(data: dict[str, Any]) -> TrialBalanceAdjustment:
    return TrialBalanceAdjustment(
        id=data["id"],
        tb_id=data["tb_id"],
        account_code=data["account_code"],
        debit=dec_in(data["debit"]),
        credit=dec_in(data["credit"]),
        reason=data["reason"],
        created_by=data["created_by"],
        created_at=dt_in(data["created_at"]),
        currency=data.get("currency"),
        original_debit=dec_in(data.get("original_debit")),
        original_credit=dec_in(data.get("original_credit")),
        fx_rate_to_base=dec_in(data.get("fx_rate_to_base")),
        fx_fallback_used=bool(data.get("fx_fallback_used", False)),
    )


class TrialBalanceCodec(RecordCodec[TrialBalance]):
    def encode(self, record: TrialBalance) -> dict[str, Any]:
        return {
            "id": record.id,
            "company_id": record.company_id,
            "period_start": date_out(record.period_start),
            "period_end": date_out(record.period_end),
            "status": record.status.value,
            "currency": record.currency,
            "uploaded_by": record.uploaded_by,
            "uploaded_at": dt_out(record.uploaded_at),
            "notes": record.notes,
            "entries": [_encode_entry(e) for e in record.entries],
            "adjustments": [_encode_adjustment(a) for a in record.adjustments],
        }

    def decode(self, data: dict[str, Any]) -> TrialBalance:
        return TrialBalance(
            id=data["id"],
            company_id=data["company_id"],
            period_start=date_in(data["period_start"]),
            period_end=date_in(data["period_end"]),
            status=TrialBalanceStatus(data["status"]),
            currency=data.get("currency"),
            uploaded_by=data.get("uploaded_by"),
            uploaded_at=dt_in(data.get("uploaded_at")),
            notes=data.get("notes"),
            entries=tuple(_decode_entry(e) for e in data.get("entries", [])),
            adjustments=tuple(_decode_adjustment(a) for a in data.get("adjustments", [])),
        )


class ExchangeRateCodec(RecordCodec[ExchangeRate]):
    def encode(self, record: ExchangeRate) -> dict[str, Any]:
        return {
            "id": record.id,
            "base": record.base,
            "target": record.target,
            "date": date_out(record.date),
            "rate": dec_out(record.rate),
            "created_at": dt_out(record.created_at),
            "source": record.source,
        }

    def decode(self, data: dict[str, Any]) -> ExchangeRate:
        return ExchangeRate(
            id=data["id"],
            base=data["base"],
            target=data["target"],
            date=date_in(data["date"]),
            rate=dec_in(data["rate"]),
            created_at=dt_in(data.get("created_at")),
            source=data.get("source"),
        )


class JournalTransactionCodec(RecordCodec[JournalTransaction]):
    def encode(self, record: JournalTransaction) -> dict[str, Any]:
        return {
            "id": record.id,
            "company_id": record.company_id,
            "date": date_out(record.date),
            "account_code": record.account_code,
            "debit": dec_out(record.debit),
            "credit": dec_out(record.credit),
            "currency": record.currency,
            "source": record.source.value,
            "description": record.description,
            "reference": record.reference,
            "created_at": dt_out(record.created_at),
            "created_by": record.created_by,
            "original_debit": dec_out(record.original_debit),
            "original_credit": dec_out(record.original_credit),
            "fx_rate_to_base": dec_out(record.fx_rate_to_base),
        }

    def decode(self, data: dict[str, Any]) -> JournalTransaction:
        return JournalTransaction(
            id=data["id"],
            company_id=data["company_id"],
            date=date_in(data["date"]),
            account_code=data["account_code"],
            debit=dec_in(data["debit"]),
            credit=dec_in(data["credit"]),
            currency=data["currency"],
            source=TransactionSource(data.get("source", "upload")),
            description=data.get("description"),
            reference=data.get("reference"),
            created_at=dt_in(data.get("created_at")),
            created_by=data.get("created_by"),
            original_debit=dec_in(data.get("original_debit")),
            original_credit=dec_in(data.get("original_credit")),
            fx_rate_to_base=dec_in(data.get("fx_rate_to_base")),
        )


class AuditEventCodec(RecordCodec[AuditEvent]):
    """
    ``changes`` and ``meta`` are stored as given; callers put only JSON-safe
    values in them (the audit service stringifies Decimals and dates).
    """

    def encode(self, record: AuditEvent) -> dict[str, Any]:
        return {
            "id": record.id,
            "company_id": record.company_id,
            "seq": record.seq,
            "entity": record.entity.value,
            "entity_id": record.entity_id,
            "action": record.action.value,
            "timestamp": dt_out(record.timestamp),
            "actor": record.actor,
            "changes": record.changes,
            "meta": record.meta,
            "payload_hash": record.payload_hash,
            "prev_hash": record.prev_hash,
            "hash": record.hash,
        }

    def decode(self, data: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            id=data["id"],
            company_id=data["company_id"],
            seq=data["seq"],
            entity=AuditEntity(data["entity"]),
            entity_id=data["entity_id"],
            action=AuditAction(data["action"]),
            timestamp=dt_in(data["timestamp"]),
            actor=data.get("actor"),
            changes=data.get("changes") or {},
            meta=data.get("meta") or {},
            payload_hash=data.get("payload_hash", ""),
            prev_hash=data.get("prev_hash"),
            hash=data.get("hash", ""),
        )


class LearnedMappingCodec(RecordCodec[LearnedMapping]):
    def encode(self, record: LearnedMapping) -> dict[str, Any]:
        return {"source_code": record.source_code, "account_code": record.account_code}

    def decode(self, data: dict[str, Any]) -> LearnedMapping:
        return LearnedMapping(
            source_code=data["source_code"],
            account_code=data["account_code"],
        )
