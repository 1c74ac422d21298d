"""Tests for the queued action model."""
import json

import pytest

from tillsync.core.errors import UnknownActionError
from tillsync.offline.actions import (
    InsertTransaction,
    QueuedAction,
    RawAction,
    TransactionHeader,
    TransactionLineItem,
    action_from_payload,
)

from conftest import make_action


class TestInsertTransaction:
    """Test the InsertTransaction variant."""

    def test_type_tag(self):
        """Queued insert carries the INSERT_TRANSACTION tag."""
        queued = QueuedAction(id="a1", action=make_action(), timestamp=1)
        assert queued.type == "INSERT_TRANSACTION"

    def test_stored_form_uses_remote_columns(self):
        """Stored payload is shaped as transaction row plus item rows."""
        queued = QueuedAction(id="a1", action=make_action(header_id="tx-9"), timestamp=123)
        stored = queued.to_dict()

        assert stored["id"] == "a1"
        assert stored["timestamp"] == 123
        assert stored["payload"]["transaction"]["id"] == "tx-9"
        assert stored["payload"]["transaction"]["total_amount"] == 50000
        assert stored["payload"]["transaction"]["status"] == "completed"
        assert len(stored["payload"]["items"]) == 2
        assert "transaction_id" not in stored["payload"]["items"][0]

    def test_decode_restores_equal_action(self):
        """Decoding the stored form gives back an equal action."""
        queued = QueuedAction(id="a1", action=make_action(), timestamp=5)
        restored = QueuedAction.from_dict(json.loads(json.dumps(queued.to_dict())))
        assert restored == queued

    def test_with_header_does_not_mutate(self):
        """Patching a header returns a new action; the original is untouched."""
        action = make_action(user_id=None)
        patched = action.with_header(user_id="user-7")

        assert patched.header.user_id == "user-7"
        assert action.header.user_id is None
        assert patched.items == action.items

    def test_missing_optional_fields_default_to_none(self):
        """Payloads from older builds without newer columns still decode."""
        action = InsertTransaction.from_payload({
            "transaction": {"id": "tx-old", "total_amount": 1000, "status": "completed"},
            "items": [{"id": "i1", "product_id": None, "product_name": "Es Teh",
                       "quantity": 1, "price": 1000}],
        })
        assert action.header.branch_id is None
        assert action.header.created_at is None
        assert action.items[0].cost == 0

    def test_unknown_columns_ignored(self):
        """Extra keys in a stored row are dropped instead of failing."""
        header = TransactionHeader.from_row({"id": "tx-1", "legacy_flag": True})
        assert header.id == "tx-1"


class TestLineItems:
    """Test line item rows."""

    def test_custom_item_has_null_product(self):
        """A custom item is one without a catalog product id."""
        item = TransactionLineItem(id="i1", product_id=None, product_name="Ongkir",
                                   quantity=1, price=10000)
        assert item.is_custom
        assert item.to_row("tx-1")["product_id"] is None

    def test_row_tagged_with_header(self):
        """to_row adds the header's id as transaction_id."""
        item = TransactionLineItem(id="i1", product_id="p1", product_name="Kopi",
                                   quantity=2, price=15000, cost=6000)
        row = item.to_row("tx-42")
        assert row["transaction_id"] == "tx-42"
        assert row["cost"] == 6000
        assert not item.is_custom


class TestUnknownActions:
    """Test handling of unregistered action types."""

    def test_action_from_payload_raises(self):
        """Strict decoding refuses unknown tags."""
        with pytest.raises(UnknownActionError):
            action_from_payload("UPDATE_PRODUCT", {"id": "p1"})

    def test_queued_unknown_kept_raw(self):
        """A queued entry with an unknown tag is kept verbatim."""
        stored = {"id": "a1", "type": "UPDATE_PRODUCT", "payload": {"id": "p1", "stock": 3},
                  "timestamp": 10}
        queued = QueuedAction.from_dict(stored)

        assert isinstance(queued.action, RawAction)
        assert queued.type == "UPDATE_PRODUCT"
        assert queued.to_dict() == stored
