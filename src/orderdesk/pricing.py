"""Line-item aggregation: effective prices, cart edits and subtotals.

Every function here is pure. Item sequences are tuples and are returned as
new tuples; nothing is mutated in place.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Any, Iterable

from .models import OrderItem, Product, ProductRef
from .money import ZERO, parse_price


def effective_price(product: Product) -> Decimal:
    """Sale price when the product is on sale with a positive sale price, else list price."""
    if was_on_sale(product):
        return parse_price(product.sale_price)
    return parse_price(product.price)


def was_on_sale(product: Product) -> bool:
    return bool(product.on_sale) and parse_price(product.sale_price) > ZERO


def clamp_quantity(value: Any) -> int:
    """Coerce a quantity to an int >= 1. Unparsable input becomes 1."""
    try:
        quantity = int(value)
    except (TypeError, ValueError, ArithmeticError):
        return 1
    return max(1, quantity)


def parse_index(value: Any) -> int | None:
    """Coerce a line index to an int, or None if it can't be read as one."""
    try:
        return int(value)
    except (TypeError, ValueError, ArithmeticError):
        return None


def line_item_from_product(product: Product, quantity: int = 1) -> OrderItem:
    """Snapshot the product's current prices into a new line."""
    return OrderItem(
        product=ProductRef(id=product.id, name=product.name),
        quantity=clamp_quantity(quantity),
        original_price=parse_price(product.price),
        price_at_purchase=effective_price(product),
        was_on_sale=was_on_sale(product),
    )


def find_item(items: Iterable[OrderItem], product_id: str) -> int | None:
    """Index of the first line for product_id, or None."""
    for i, item in enumerate(items):
        if item.product.id == product_id:
            return i
    return None


def add_or_increment(items: tuple[OrderItem, ...], product: Product) -> tuple[OrderItem, ...]:
    """
    Add one unit of product to the cart.

    An existing line only gets quantity + 1; its price snapshot is kept.
    """
    idx = find_item(items, product.id)
    if idx is None:
        return tuple(items) + (line_item_from_product(product),)

    bumped = replace(items[idx], quantity=items[idx].quantity + 1)
    return tuple(items[:idx]) + (bumped,) + tuple(items[idx + 1:])


def remove_item(items: tuple[OrderItem, ...], product_id: str) -> tuple[OrderItem, ...]:
    return tuple(item for item in items if item.product.id != product_id)


def set_quantity(
    items: tuple[OrderItem, ...], product_id: str, quantity: Any
) -> tuple[OrderItem, ...]:
    """Set a line's quantity, clamped to >= 1. Never removes the line."""
    qty = clamp_quantity(quantity)
    return tuple(
        replace(item, quantity=qty)
        if item.product.id == product_id
        else item
        for item in items
    )


def subtotal(items: Iterable[OrderItem]) -> Decimal:
    return sum((item.price_at_purchase * item.quantity for item in items), ZERO)
