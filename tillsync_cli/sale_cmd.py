"""Sale CLI commands."""
import asyncio
import json
import sys

import click

from tillsync.checkout import Cart, Product, TransactionRecorder
from tillsync.core.errors import CheckoutError
from .offline_cmd import open_service
from .output import print_error, print_json, print_success, print_warning


def load_cart(data: dict) -> Cart:
    """Build a Cart from its JSON form.

    {"items": [{"product_id": "p1", "name": "Tea", "price": 5000,
                "cost": 2000, "quantity": 2}],
     "discount": 0, "customer_id": null, "table_number": "4"}

    Items without product_id are custom items.
    """
    cart = Cart(
        discount=data.get("discount", 0),
        customer_id=data.get("customer_id"),
        table_number=data.get("table_number"),
    )
    for item in data.get("items", []):
        product = Product(
            id=item.get("product_id"),
            name=item["name"],
            price=item["price"],
            cost=item.get("cost", 0),
        )
        cart.add_item(product, item.get("quantity", 1))
    return cart


@click.group()
def sale():
    """Sale commands."""
    pass


@sale.command('record')
@click.argument('cart_file', type=click.File('r'))
@click.option('--payment', '-p', default='cash', help='Payment method')
@click.option('--received', '-r', type=float, default=None, help='Amount received')
@click.option('--register', default=None, help='Cash register id')
def record(cart_file, payment: str, received, register):
    """Record a sale from a JSON cart file."""
    try:
        cart = load_cart(json.load(cart_file))

        service = open_service()

        async def run():
            await service.start(auto_sync=False)
            try:
                recorder = TransactionRecorder(service, cash_register_id=register)
                return await recorder.record_sale(cart, payment, received)
            finally:
                await service.stop()

        result = asyncio.run(run())

        if not result.success:
            print_error(f"Sale NOT recorded: {result.error}")
            print_json(result.to_dict())
            sys.exit(1)

        if result.queued:
            print_warning("Sale saved on this device and will be sent when online")
        else:
            print_success("Sale recorded")
        print_json(result.to_dict())

    except CheckoutError as e:
        print_error(str(e))
        sys.exit(1)
    except (KeyError, ValueError) as e:
        print_error(f"Invalid cart file: {e}")
        sys.exit(1)
