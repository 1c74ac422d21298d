"""In-memory cart state for the sale being rung up."""
from dataclasses import dataclass, field
from typing import Optional

from tillsync.core.receipt import new_id


@dataclass(frozen=True)
class Product:
    """Catalog product. id is None for a custom (manual) item."""
    id: Optional[str]
    name: str
    price: float
    cost: float = 0

    @property
    def is_custom(self) -> bool:
        return self.id is None


@dataclass
class CartItem:
    product: Product
    quantity: float = 1
    key: str = ""

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    discount: float = 0
    customer_id: Optional[str] = None
    table_number: Optional[str] = None

    def add_item(self, product: Product, quantity: float = 1) -> CartItem:
        """Add a catalog product, bumping quantity if it is already in the cart."""
        if not product.is_custom:
            for item in self.items:
                if item.product.id == product.id:
                    item.quantity += quantity
                    return item

        key = product.id if not product.is_custom else f"custom-{new_id()}"
        item = CartItem(product=product, quantity=quantity, key=key)
        self.items.append(item)
        return item

    def add_custom_item(self, name: str, price: float, quantity: float = 1) -> CartItem:
        """Add a manual item with no catalog product behind it."""
        return self.add_item(Product(id=None, name=name, price=price), quantity)

    def remove_item(self, key: str) -> None:
        self.items = [item for item in self.items if item.key != key]

    def update_quantity(self, key: str, quantity: float) -> None:
        if quantity <= 0:
            self.remove_item(key)
            return
        for item in self.items:
            if item.key == key:
                item.quantity = quantity

    @property
    def subtotal(self) -> float:
        return sum(item.line_total for item in self.items)

    @property
    def total(self) -> float:
        return self.subtotal - self.discount

    @property
    def item_count(self) -> float:
        return sum(item.quantity for item in self.items)

    def clear(self) -> None:
        self.items = []
        self.discount = 0
        self.customer_id = None
        self.table_number = None
