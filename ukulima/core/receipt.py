"""Core receipt primitives used by every Ukulima offline module.

Functions:
    dual_hash: SHA256:BLAKE3 dual-hash format
    emit_receipt: Emit receipt with required fields to stdout
    utc_now / iso_ts: Timestamp helpers shared by persisted records
    StopRule: Exception for invariant violations
"""
import hashlib
import json
import os
from datetime import datetime, timezone

import blake3


class StopRule(Exception):
    """Raised when an invariant is violated. Never catch silently."""
    pass


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso_ts(moment: datetime | None = None) -> str:
    """Format a datetime as ISO-8601 with a trailing Z."""
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_ts(value: str) -> datetime:
    """Parse an ISO-8601 timestamp written by iso_ts().

    Raises:
        StopRule: If the value is not a parseable timestamp
    """
    if not isinstance(value, str):
        raise StopRule(f"Timestamp must be a string, got {type(value).__name__}")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise StopRule(f"Bad timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def dual_hash(data: bytes | str | dict) -> str:
    """Compute dual hash in format 'sha256hex:blake3hex'.

    Pure function with no side effects.

    Args:
        data: Bytes, string, or dict to hash

    Returns:
        String in format 'sha256hex:blake3hex' (both 64 hex chars)
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"))
    if isinstance(data, str):
        data = data.encode("utf-8")

    sha256_hex = hashlib.sha256(data).hexdigest()
    blake3_hex = blake3.blake3(data).hexdigest()

    return f"{sha256_hex}:{blake3_hex}"


def _receipts_muted() -> bool:
    return os.environ.get("UKULIMA_QUIET_RECEIPTS", "").lower() == "true"


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Prints JSON to stdout with flush=True unless UKULIMA_QUIET_RECEIPTS
    is set to "true".

    Args:
        receipt_type: Type of receipt (action_enqueued, action_replayed, ...)
        data: Receipt payload data
        tenant_id: Tenant identifier (default: "default")

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    payload_bytes = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    payload_hash = dual_hash(payload_bytes)

    receipt = {
        "receipt_type": receipt_type,
        "ts": iso_ts(),
        "tenant_id": tenant_id,
        "payload_hash": payload_hash,
        **data
    }

    if not _receipts_muted():
        print(json.dumps(receipt, sort_keys=True, default=str), flush=True)

    return receipt
