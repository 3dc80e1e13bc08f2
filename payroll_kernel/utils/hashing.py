"""
Deterministic hashing and JSON-normalisation utilities.

All hashing in the payroll packages is deterministic and reproducible.
``jsonable`` turns audit payloads and stored line items into plain JSON
values without losing decimal precision.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def jsonable(value: Any) -> Any:
    """
    Convert a value tree into JSON-native types.

    Decimals become their exact string form ("12000.00" stays "12000.00"),
    dates and datetimes become ISO strings, UUIDs become strings and enums
    become their values.  Dicts, lists and tuples are converted recursively.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return jsonable(value.value)
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(v) for v in value]
    if isinstance(value, float):
        raise TypeError("Floats are not allowed in payroll payloads; use Decimal")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to a canonical JSON string: sorted keys, no whitespace,
    Decimal/UUID/date normalised through ``jsonable``.
    """
    return json.dumps(jsonable(data), sort_keys=True, separators=(",", ":"))


def hash_payload(payload: dict) -> str:
    """SHA-256 hex digest of a payload's canonical JSON."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Hash for an audit event, chaining to the previous event's hash.

    The genesis event chains to the literal "GENESIS".
    """
    components = [
        entity_type,
        str(entity_id),
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
