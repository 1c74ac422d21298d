"""Sale payload assembly and routing.

At checkout the cart becomes a header plus line items. The sale is written
straight to the remote store when online; when offline, or when the direct
write fails for any reason, the same payload (same id) goes to the offline
queue. The cashier sees "recorded" as soon as either path succeeds. Only a
failure to queue is reported as a failed sale.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from tillsync.checkout.cart import Cart
from tillsync.core.constants import SELECTED_BRANCH_KEY, STATUS_COMPLETED
from tillsync.core.errors import CheckoutError, QueuePersistenceError
from tillsync.core.receipt import emit_receipt, new_id, utc_now_iso
from tillsync.offline.actions import (
    InsertTransaction,
    TransactionHeader,
    TransactionLineItem,
)
from tillsync.offline.service import OfflineService
from tillsync.remote.session import resolve_user_id

logger = logging.getLogger("tillsync.checkout")


@dataclass
class CheckoutResult:
    """What the checkout screen needs to know."""
    success: bool
    transaction_id: Optional[str] = None
    queued: bool = False
    change: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def build_payload(
    cart: Cart,
    payment_method: str,
    user_id: Optional[str] = None,
    branch_id: Optional[str] = None,
    cash_register_id: Optional[str] = None,
) -> InsertTransaction:
    """Turn cart state into an InsertTransaction.

    The header id is generated here, so the direct write and any later
    replay from the queue share it. Names, prices and costs are snapshotted.

    Raises:
        CheckoutError: empty cart or non-positive quantity
    """
    if not cart.items:
        raise CheckoutError("Cart is empty")

    items = []
    for item in cart.items:
        if item.quantity <= 0:
            raise CheckoutError(f"Invalid quantity {item.quantity} for {item.product.name}")
        product = item.product
        items.append(TransactionLineItem(
            id=new_id(),
            product_id=product.id,
            product_name=product.name,
            quantity=item.quantity,
            price=product.price,
            cost=product.cost,
        ))

    header = TransactionHeader(
        id=new_id(),
        user_id=user_id,
        branch_id=branch_id,
        cash_register_id=cash_register_id,
        total_amount=cart.total,
        discount=cart.discount or 0,
        status=STATUS_COMPLETED,
        payment_method=payment_method,
        table_number=cart.table_number or None,
        customer_id=cart.customer_id,
        created_at=utc_now_iso(),
    )
    return InsertTransaction(header=header, items=tuple(items))


class TransactionRecorder:
    """Records completed sales, online or offline."""

    def __init__(self, service: OfflineService, cash_register_id: Optional[str] = None):
        self.service = service
        self.cash_register_id = cash_register_id

    async def record_sale(
        self,
        cart: Cart,
        payment_method: str,
        received_amount: Optional[float] = None,
        cash_register_id: Optional[str] = None,
    ) -> CheckoutResult:
        """Record the cart as a completed sale and clear it on success.

        Raises:
            CheckoutError: invalid cart, or received amount below the total
        """
        total = cart.total
        if received_amount is not None and received_amount < total:
            raise CheckoutError(f"Received {received_amount} is less than total {total}")
        change = received_amount - total if received_amount is not None else None

        user_id = await resolve_user_id(self.service.sessions)
        if user_id is None:
            # Patched at sync time if a session shows up
            logger.warning("No user for sale (online=%s), recording without user_id",
                           self.service.is_online)
        branch_id = await self.service.storage.get(SELECTED_BRANCH_KEY)

        action = build_payload(
            cart,
            payment_method,
            user_id=user_id,
            branch_id=branch_id,
            cash_register_id=cash_register_id or self.cash_register_id,
        )
        transaction_id = action.header.id

        if not self.service.is_online:
            logger.info("Offline, queueing transaction %s", transaction_id)
            result = await self._queue(action, change)
        else:
            result = await self._write_direct(action, change)

        if result.success:
            cart.clear()
        return result

    async def _write_direct(self, action: InsertTransaction, change) -> CheckoutResult:
        header = action.header
        remote = self.service.remote
        try:
            await remote.insert_transaction(header.to_row())
            await remote.insert_transaction_items(
                [item.to_row(header.id) for item in action.items]
            )
        except Exception as e:
            # Any failure here, network or rejection, falls back to the queue
            logger.error("Online transaction %s failed: %s", header.id, e)
            emit_receipt("sale_direct_write_failed", {
                "tenant_id": self.service.config.tenant_id,
                "transaction_id": header.id,
                "error": str(e),
            })
            result = await self._queue(action, change)
            if result.success:
                result.error = "Saved offline due to network error"
            return result

        emit_receipt("sale_recorded", {
            "tenant_id": self.service.config.tenant_id,
            "transaction_id": header.id,
            "total_amount": header.total_amount,
            "item_count": len(action.items),
            "queued": False,
        })
        return CheckoutResult(success=True, transaction_id=header.id, change=change)

    async def _queue(self, action: InsertTransaction, change) -> CheckoutResult:
        header = action.header
        try:
            queued = await self.service.queue.enqueue(action)
        except QueuePersistenceError as e:
            logger.exception("Could not queue transaction %s", header.id)
            return CheckoutResult(
                success=False,
                transaction_id=header.id,
                change=change,
                error=str(e),
            )

        emit_receipt("sale_recorded", {
            "tenant_id": self.service.config.tenant_id,
            "transaction_id": header.id,
            "action_id": queued.id,
            "total_amount": header.total_amount,
            "item_count": len(action.items),
            "queued": True,
        })
        return CheckoutResult(success=True, transaction_id=header.id, queued=True, change=change)
