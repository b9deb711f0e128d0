"""
AuditService -- append-only, hash-chained audit log per company.

Responsibility:
    Records every trial balance create and status change, every adjustment
    create/update/delete and every transaction create.  Provides the
    read-only ``list_audit`` query and chain validation for tamper detection.

Architecture position:
    Kernel > Services -- called by TrialBalanceService and
    TransactionService after their own write succeeded.

Invariants enforced:
    - Append-only: there is no update or delete operation.
    - ``seq`` increases by one per company, starting at 1.
    - ``hash = H(identity fields, payload_hash, prev_hash)``; the first event
      of a company has no ``prev_hash``.

Failure modes:
    - AuditChainBrokenError from ``validate_chain`` when a stored hash does
      not match its recomputed value or its predecessor.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from consultflow_kernel.domain.dtos import AuditAction, AuditEntity, AuditEvent
from consultflow_kernel.exceptions import AuditChainBrokenError
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.base import BaseService, new_id
from consultflow_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.audit")


def _jsonable(value: Any) -> Any:
    """Make audit payload values JSON-safe without losing their text form."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value


def change(old: Any, new: Any) -> dict[str, Any]:
    """One ``changes`` entry."""
    return {"from": old, "to": new}


class AuditService(BaseService[AuditEvent]):
    """
    Contract:
        ``store`` holds one list of AuditEvent per company, in append order.

    Non-goals:
        Does NOT decide what is audited; callers invoke ``record`` after
        their own write succeeded.
    """

    @staticmethod
    def _payload(event_fields: dict[str, Any]) -> dict[str, Any]:
        return {
            "entity": event_fields["entity"],
            "entity_id": event_fields["entity_id"],
            "action": event_fields["action"],
            "timestamp": event_fields["timestamp"],
            "actor": event_fields["actor"],
            "changes": event_fields["changes"],
            "meta": event_fields["meta"],
        }

    def record(
        self,
        company_id: str,
        entity: AuditEntity,
        entity_id: str,
        action: AuditAction,
        actor: str | None = None,
        changes: dict[str, Any] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Append one event to the company's log and return it."""
        created: list[AuditEvent] = []
        timestamp = self._clock.now()
        fields = {
            "entity": entity.value,
            "entity_id": entity_id,
            "action": action.value,
            "timestamp": timestamp.isoformat(),
            "actor": actor,
            "changes": _jsonable(changes or {}),
            "meta": _jsonable(meta or {}),
        }
        payload_hash = hash_payload(self._payload(fields))

        def _append(events: list[AuditEvent]) -> list[AuditEvent]:
            prev = events[-1] if events else None
            seq = prev.seq + 1 if prev else 1
            prev_hash = prev.hash if prev else None
            event = AuditEvent(
                id=new_id(),
                company_id=company_id,
                seq=seq,
                entity=entity,
                entity_id=entity_id,
                action=action,
                timestamp=timestamp,
                actor=actor,
                changes=fields["changes"],
                meta=fields["meta"],
                payload_hash=payload_hash,
                prev_hash=prev_hash,
                hash=hash_audit_event(
                    company_id, seq, entity.value, entity_id, action.value,
                    payload_hash, prev_hash,
                ),
            )
            created.append(event)
            return events + [event]

        self.store.update(company_id, _append)
        event = created[0]
        logger.info(
            "audit_event_recorded",
            extra={
                "company_id": company_id,
                "entity": entity.value,
                "entity_id": entity_id,
                "action": action.value,
                "seq": event.seq,
            },
        )
        return event

    def list_audit(
        self,
        company_id: str,
        entity: AuditEntity | None = None,
        entity_id: str | None = None,
    ) -> list[AuditEvent]:
        """Events in append order, optionally filtered."""
        events = self.store.load(company_id)
        return [
            e for e in events
            if (entity is None or e.entity == entity)
            and (entity_id is None or e.entity_id == entity_id)
        ]

    def validate_chain(self, company_id: str) -> bool:
        """
        Recompute every hash of the company's log.

        Raises:
            AuditChainBrokenError: At the first event that does not verify.
        """
        events = self.store.load(company_id)
        prev_hash: str | None = None
        for expected_seq, event in enumerate(events, start=1):
            fields = {
                "entity": event.entity.value,
                "entity_id": event.entity_id,
                "action": event.action.value,
                "timestamp": event.timestamp.isoformat(),
                "actor": event.actor,
                "changes": event.changes,
                "meta": event.meta,
            }
            payload_hash = hash_payload(self._payload(fields))
            expected = hash_audit_event(
                company_id, expected_seq, event.entity.value, event.entity_id,
                event.action.value, payload_hash, prev_hash,
            )
            if event.prev_hash != prev_hash or event.hash != expected:
                logger.critical(
                    "audit_chain_broken",
                    extra={"company_id": company_id, "event_id": event.id, "seq": event.seq},
                )
                raise AuditChainBrokenError(company_id, event.id, expected, event.hash)
            prev_hash = event.hash

        logger.info(
            "audit_chain_valid",
            extra={"company_id": company_id, "event_count": len(events)},
        )
        return True
