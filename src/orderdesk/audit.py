"""Audit-note text for order edits."""

from .models import InternalNote, Order
from .money import format_currency

ORDER_CREATED_TITLE = "Order Created"
ORDER_UPDATED_TITLE = "Order Updated"


def summarize_changes(old: Order, new: Order) -> str:
    """
    Describe what changed between two versions of an order.

    Example:
        "Order details updated. Status: pending -> shipped. Total: EGP 310.00 -> EGP 260.00."
    """
    parts = ["Order details updated."]

    if old.status != new.status:
        parts.append(f"Status: {old.status} -> {new.status}.")
    if old.shipping_address != new.shipping_address:
        parts.append("Address updated.")
    if (old.notes or "") != (new.notes or ""):
        parts.append("Notes updated.")
    if list(old.items) != list(new.items):
        parts.append("Items updated.")
    if old.total_amount != new.total_amount:
        parts.append(
            f"Total: {format_currency(old.total_amount)} -> {format_currency(new.total_amount)}."
        )
    if old.shipping_fees != new.shipping_fees:
        parts.append(
            f"Shipping: {format_currency(old.shipping_fees)} -> {format_currency(new.shipping_fees)}."
        )

    return " ".join(parts)


def created_note() -> InternalNote:
    return InternalNote.create(
        title=ORDER_CREATED_TITLE,
        summary="Order automatically created.",
        created_by="System",
    )


def updated_note(old: Order, new: Order, actor: str) -> InternalNote:
    return InternalNote.create(
        title=ORDER_UPDATED_TITLE,
        summary=summarize_changes(old, new),
        created_by=actor,
    )


def status_changed_note(old_status: str, new_status: str, actor: str) -> InternalNote:
    return InternalNote.create(
        title=f"Status Changed: {old_status} -> {new_status}",
        summary=f"Order status updated by {actor}.",
        created_by=actor,
    )
