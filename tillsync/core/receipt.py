"""Receipt primitives used by every tillsync module.

Functions:
    payload_hash: SHA-256 hex digest of a payload
    emit_receipt: Emit a receipt with required fields to stdout
    new_id: Client-generated unique identifier
    now_ms: Current time in epoch milliseconds
"""
import hashlib
import json
import time
import uuid
from datetime import datetime, timezone

# Flipped off by the CLI's --quiet flag
RECEIPTS_ENABLED = True


def payload_hash(data: bytes | str | dict) -> str:
    """Compute the SHA-256 hex digest of a payload.

    Dicts are serialized with sorted keys so equal payloads hash equally.

    Args:
        data: Bytes, string, or dict to hash

    Returns:
        64-char hex digest
    """
    if isinstance(data, dict):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"))
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Prints JSON to stdout with flush=True unless receipts are disabled.

    Args:
        receipt_type: Type of receipt (offline_enqueue, offline_sync, ...)
        data: Receipt payload data
        tenant_id: Device or branch identifier (default: "default")

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    receipt = {
        "receipt_type": receipt_type,
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "tenant_id": tenant_id,
        "payload_hash": payload_hash(json.dumps(data, sort_keys=True, default=str)),
        **data,
    }

    if RECEIPTS_ENABLED:
        print(json.dumps(receipt, sort_keys=True, default=str), flush=True)

    return receipt


def new_id() -> str:
    """Return a fresh UUID4 string."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Return the current time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Return the current UTC time as ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
