"""
Deterministic hashing for the audit chain.

Payloads are canonicalized (sorted keys, no whitespace, normalized Decimals)
before hashing so the same logical event always hashes the same way.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

GENESIS = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        # 1.10 and 1.1 must hash the same
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, compact separators."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_audit_event(
    company_id: str,
    seq: int,
    entity: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash for one audit event.

    Covers the event's identity fields, its payload hash and the previous
    event's hash, so editing or removing any earlier event breaks every
    later hash.
    """
    components = [
        company_id,
        str(seq),
        entity,
        entity_id,
        action,
        payload_hash,
        prev_hash or GENESIS,
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
