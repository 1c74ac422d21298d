"""Queued action model.

Each kind of deferred remote write is its own frozen dataclass carrying a
TYPE tag. The processor keeps one handler per class.

Stored form (one entry of the persisted queue):

    {
        "id": "<local id>",
        "type": "INSERT_TRANSACTION",
        "payload": {"transaction": {...}, "items": [...]},
        "timestamp": 1700000000000
    }

Payload rows use the remote column names so they replay as-is.
"""
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Optional, Union

from tillsync.core.constants import STATUS_COMPLETED
from tillsync.core.errors import UnknownActionError

logger = logging.getLogger("tillsync.offline")


@dataclass(frozen=True)
class TransactionHeader:
    """Sale header. id is generated client-side when the payload is assembled."""
    id: str
    user_id: Optional[str] = None
    branch_id: Optional[str] = None
    cash_register_id: Optional[str] = None
    total_amount: float = 0
    discount: float = 0
    status: str = STATUS_COMPLETED
    payment_method: Optional[str] = None
    table_number: Optional[str] = None
    customer_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_row(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict) -> "TransactionHeader":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in known})


@dataclass(frozen=True)
class TransactionLineItem:
    """One sold line. product_id is None for custom (non-catalog) items."""
    id: str
    product_id: Optional[str]
    product_name: str
    quantity: float
    price: float
    cost: float = 0

    @property
    def is_custom(self) -> bool:
        return self.product_id is None

    def to_dict(self) -> dict:
        return asdict(self)

    def to_row(self, transaction_id: str) -> dict:
        """Row for the line-item table, tagged with its header id."""
        return {**asdict(self), "transaction_id": transaction_id}

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionLineItem":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class InsertTransaction:
    """Insert a completed sale: header plus its line items."""
    TYPE = "INSERT_TRANSACTION"

    header: TransactionHeader
    items: tuple[TransactionLineItem, ...] = ()

    def with_header(self, **changes) -> "InsertTransaction":
        return replace(self, header=replace(self.header, **changes))

    def to_payload(self) -> dict:
        return {
            "transaction": self.header.to_row(),
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "InsertTransaction":
        return cls(
            header=TransactionHeader.from_row(payload["transaction"]),
            items=tuple(TransactionLineItem.from_dict(i) for i in payload.get("items", [])),
        )


@dataclass(frozen=True)
class RawAction:
    """An action whose type tag this build does not understand.

    Kept verbatim so the entry is never lost; the processor cannot apply it.
    """
    type: str
    payload: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return self.payload


Action = Union[InsertTransaction, RawAction]

# Tag -> class. New variants register here.
ACTION_TYPES: dict[str, type] = {
    InsertTransaction.TYPE: InsertTransaction,
}


def action_type(action: Action) -> str:
    if isinstance(action, RawAction):
        return action.type
    return action.TYPE


def action_from_payload(tag: str, payload: dict) -> Action:
    """Decode a typed action.

    Raises:
        UnknownActionError: tag is not registered
    """
    cls = ACTION_TYPES.get(tag)
    if cls is None:
        raise UnknownActionError(f"Unknown action type: {tag}")
    return cls.from_payload(payload)


@dataclass(frozen=True)
class QueuedAction:
    """A pending remote write. Immutable once queued."""
    id: str
    action: Action
    timestamp: int

    @property
    def type(self) -> str:
        return action_type(self.action)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.action.to_payload(),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueuedAction":
        tag = data["type"]
        payload = data.get("payload") or {}
        try:
            action = action_from_payload(tag, payload)
        except UnknownActionError:
            logger.warning("Keeping queued action %s with unknown type %s", data["id"], tag)
            action = RawAction(type=tag, payload=payload)
        return cls(id=data["id"], action=action, timestamp=int(data.get("timestamp", 0)))
