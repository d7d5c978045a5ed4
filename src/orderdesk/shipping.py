"""Shipping-fee resolution for a cart and destination."""

from decimal import Decimal
from typing import Iterable

from .catalog import Catalog
from .config import DEFAULT_SHIPPING_FEE
from .models import Address, OrderItem
from .money import ZERO
from .rates import RateTable


def has_free_delivery(items: Iterable[OrderItem], catalog: Catalog) -> bool:
    """Whether any line's catalog product carries the free-delivery flag."""
    for item in items:
        product = catalog.get(item.product.id)
        if product is not None and product.free_delivery:
            return True
    return False


def resolve_shipping_fee(
    items: Iterable[OrderItem],
    address: Address,
    catalog: Catalog,
    rates: RateTable,
    default_fee: Decimal = DEFAULT_SHIPPING_FEE,
) -> Decimal:
    """
    Suggested shipping fee, evaluated in order:

    1. Any free-delivery product in the cart -> 0.
    2. Governorate or city empty -> default fee.
    3. City listed under the governorate -> its configured fee.
    4. Otherwise -> default fee.
    """
    if has_free_delivery(items, catalog):
        return ZERO

    if not address.is_complete:
        return default_fee

    fee = rates.fee_for(address.governorate, address.city)
    if fee is None:
        return default_fee
    return fee
