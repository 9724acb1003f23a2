"""Persisted record schemas and validation.

Constants:
    SCHEMA_VERSION: Current on-disk version of every persisted record
    RECORD_SCHEMAS: Schema dicts keyed by record kind

Functions:
    validate_record: Validate a persisted record against its schema
"""
from .receipt import StopRule


SCHEMA_VERSION = 1

# Versions this build can still read
SUPPORTED_VERSIONS = (1,)


RECORD_SCHEMAS = {
    "queued_action": {
        "schema_version": int,
        "id": str,
        "kind": str,
        "payload": dict,
        "enqueued_at": str,
        "retry_count": int,
    },
    "dead_letter": {
        "schema_version": int,
        "action": dict,
        "error": str,
        "failed_at": str,
        "terminal": bool,
    },
    "mirror_entry": {
        "schema_version": int,
        "value": (dict, list, str, int, float, bool, type(None)),
        "timestamp": str,
    },
    "analytics_event": {
        "id": str,
        "event": str,
        "data": (dict, type(None)),
        "timestamp": str,
        "online": bool,
    },
}


def validate_record(kind: str, record: dict) -> bool:
    """Validate record has the schema's fields with the right types.

    Args:
        kind: Record kind (key of RECORD_SCHEMAS)
        record: Record dict to validate

    Returns:
        True if valid

    Raises:
        StopRule: If validation fails (unknown kind, missing field,
            wrong type or unsupported schema_version)
    """
    if kind not in RECORD_SCHEMAS:
        raise StopRule(f"Unknown record kind: {kind}")
    if not isinstance(record, dict):
        raise StopRule(f"{kind} record must be a dict")

    for field, expected in RECORD_SCHEMAS[kind].items():
        if field not in record:
            raise StopRule(f"{kind}: missing required field: {field}")
        value = record[field]
        # bool is an int subclass; keep counters honest
        if expected is int and isinstance(value, bool):
            raise StopRule(f"{kind}: field {field} must be int")
        if not isinstance(value, expected):
            raise StopRule(f"{kind}: field {field} has wrong type {type(value).__name__}")

    version = record.get("schema_version")
    if version is not None and version not in SUPPORTED_VERSIONS:
        raise StopRule(f"{kind}: unsupported schema_version {version}")

    return True
