from .receipt import StopRule, dual_hash, emit_receipt, iso_ts, parse_ts, utc_now
from .schemas import RECORD_SCHEMAS, SCHEMA_VERSION, validate_record

__all__ = [
    "StopRule",
    "dual_hash",
    "emit_receipt",
    "iso_ts",
    "parse_ts",
    "utc_now",
    "RECORD_SCHEMAS",
    "SCHEMA_VERSION",
    "validate_record",
]
