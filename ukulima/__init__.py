"""
Ukulima - Offline-first client core for the Ukulima Biashara marketplace

Farmers and buyers keep working when the network drops. Every mutation
that cannot reach the API is queued durably and replayed in order when
connectivity returns; every successful read is mirrored locally so the
last known state is always there to show.
"""

__version__ = "1.0.0"

from ukulima.config import OfflineConfig
from ukulima.core.receipt import StopRule, dual_hash, emit_receipt
from ukulima.offline import OfflineManager

__all__ = [
    "OfflineConfig",
    "OfflineManager",
    "StopRule",
    "dual_hash",
    "emit_receipt",
    "__version__",
]
