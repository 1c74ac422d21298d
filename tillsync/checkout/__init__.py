"""Checkout: cart state, sale payload assembly and routing."""
from tillsync.checkout.cart import Cart, CartItem, Product
from tillsync.checkout.assembly import CheckoutResult, TransactionRecorder, build_payload

__all__ = [
    "Cart",
    "CartItem",
    "Product",
    "CheckoutResult",
    "TransactionRecorder",
    "build_payload",
]
