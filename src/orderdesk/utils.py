"""Utility functions for orderdesk."""

import re

from .config import PHONE_LENGTH
from .money import format_currency

_ARABIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩", "0123456789")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"\D")


def format_phone_number(phone: str | None) -> str | None:
    """
    Normalize a phone number into its digits-only form.

    - Arabic-Indic digits are translated ("٠١٠" -> "010")
    - Whitespace is removed
    - A leading "+2" country prefix is dropped
    - Any remaining non-digit character is removed

    Returns None for empty input. The result is not length-checked;
    see is_valid_phone.
    """
    if not phone:
        return None

    formatted = str(phone).translate(_ARABIC_DIGITS)
    formatted = _WHITESPACE_RE.sub("", formatted)
    if formatted.startswith("+2"):
        formatted = formatted[2:]
    return _NON_DIGIT_RE.sub("", formatted)


def is_valid_phone(phone: str | None) -> bool:
    """Whether phone is an already-normalized local mobile number."""
    return bool(phone) and phone.isdigit() and len(phone) == PHONE_LENGTH


def truncate_id(doc_id: str) -> str:
    """Truncate a document ID for display."""
    return doc_id[:8]


def format_product(product: "Product") -> str:
    """Format a product for display."""
    # Import here to avoid circular import
    from .pricing import effective_price, was_on_sale

    price = format_currency(product.price, product.currency)
    if was_on_sale(product):
        price = f"{format_currency(effective_price(product), product.currency)} (was {price})"

    flags = []
    if product.free_delivery:
        flags.append("free delivery")
    if product.featured:
        flags.append("featured")
    flag_str = f" [{', '.join(flags)}]" if flags else ""

    return f"{product.id}  {product.name}  {price}{flag_str}"


def format_customer(customer: "Customer") -> str:
    """Format a customer for display."""
    location = ", ".join(p for p in (customer.address.city, customer.address.governorate) if p)
    location_str = f"  {location}" if location else ""
    return f"{customer.id}  {customer.full_name}{location_str} ({customer.status})"


def format_order(order: "Order", verbose: bool = False) -> str:
    """Format an order for display."""
    item_count = sum(item.quantity for item in order.items)
    result = (
        f"{truncate_id(order.id)}  {order.order_date[:10]}  {order.customer_id}  "
        f"{item_count} item(s)  {format_currency(order.total_amount)} ({order.status})"
    )

    if verbose:
        for item in order.items:
            sale = " (sale)" if item.was_on_sale else ""
            result += (
                f"\n         {item.quantity} x {item.product.name} @ "
                f"{format_currency(item.price_at_purchase)}{sale}"
            )
        addr = order.shipping_address
        result += f"\n         Ship to: {addr.governorate} / {addr.city}"
        if addr.full_address:
            result += f", {addr.full_address}"
        result += f"\n         Subtotal: {format_currency(order.subtotal)}"
        result += f"\n         Shipping: {format_currency(order.shipping_fees)}"
        result += f"\n         Total: {format_currency(order.total_amount)}"
        if order.notes:
            result += f"\n         Notes: {order.notes}"
        if order.internal_notes:
            result += "\n         Log:"
            for note in order.internal_notes:
                result += f"\n           | {note.timestamp}  {note.title} ({note.created_by})"

    return result
