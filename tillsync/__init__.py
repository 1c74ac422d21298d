"""
tillsync - offline sale queue and reconciliation for a point-of-sale till.

Sales keep flowing when the network does not. Every sale is either written
straight to the remote store or durably queued on the device, and queued
sales are replayed when connectivity returns.
"""

__version__ = "0.1.0"

from tillsync.core.receipt import emit_receipt, payload_hash, new_id, now_ms
from tillsync.core.errors import (
    TillSyncError,
    QueuePersistenceError,
    RemoteError,
    RemoteUnavailableError,
    UnknownActionError,
    CheckoutError,
)

__all__ = [
    "__version__",
    "emit_receipt",
    "payload_hash",
    "new_id",
    "now_ms",
    "TillSyncError",
    "QueuePersistenceError",
    "RemoteError",
    "RemoteUnavailableError",
    "UnknownActionError",
    "CheckoutError",
]
