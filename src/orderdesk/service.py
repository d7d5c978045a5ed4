"""Order workflows: submission, edits, status changes and audit notes."""

import logging
from pathlib import Path

from .audit import status_changed_note, updated_note
from .catalog import Catalog
from .errors import (
    CustomerRequiredError,
    EmptyOrderError,
    InvalidPhoneError,
    InvalidStatusTransitionError,
    MissingFieldError,
    ValidationError,
)
from .models import (
    ORDER_STATUSES,
    InternalNote,
    Order,
    OrderDraft,
    _generate_id,
    can_cancel,
    next_status,
)
from .rates import RateTable
from .reconciler import Reconciler
from .stores import CustomerStore, OrderStore, ProductStore
from .utils import format_phone_number, is_valid_phone

logger = logging.getLogger(__name__)


def validate_draft(draft: OrderDraft) -> None:
    """
    Check that a draft can be submitted.

    Raises:
        EmptyOrderError: If the draft has no items.
        InvalidPhoneError: If a new customer's phone isn't 11 digits once normalized.
        MissingFieldError: If a new customer lacks name, governorate, city or address.
        CustomerRequiredError: If no existing customer is selected.
    """
    if not draft.items:
        raise EmptyOrderError()

    if draft.customer_mode == "new":
        phone = format_phone_number(draft.new_customer.phone)
        if not is_valid_phone(phone):
            raise InvalidPhoneError(draft.new_customer.phone)
        if not draft.new_customer.full_name.strip():
            raise MissingFieldError("full_name")
        address = draft.shipping_address
        if not address.governorate:
            raise MissingFieldError("governorate")
        if not address.city:
            raise MissingFieldError("city")
        if not address.full_address.strip():
            raise MissingFieldError("full_address")
    elif not draft.customer_id:
        raise CustomerRequiredError()


class OrderService:
    """Ties the stores, catalog snapshot and reconciler together."""

    def __init__(self, data_dir: Path | None = None, rates: RateTable | None = None):
        """
        Initialize OrderService.

        Args:
            data_dir: Override data directory (for testing).
            rates: Rate table to use instead of the configured one.
        """
        self.products = ProductStore(data_dir)
        self.customers = CustomerStore(data_dir)
        self.orders = OrderStore(data_dir)
        self.rates = rates or RateTable.load()

    def catalog(self) -> Catalog:
        """Take a fresh catalog snapshot for an editing session."""
        return Catalog(self.products.list_products())

    def reconciler(self, catalog: Catalog | None = None) -> Reconciler:
        return Reconciler(catalog or self.catalog(), self.rates)

    def load_draft(self, order_id: str) -> OrderDraft:
        """Load a stored order into an edit draft."""
        order = self.orders.get_order(order_id)
        return self.reconciler().draft_from_order(order)

    def submit_draft(self, draft: OrderDraft, actor: str = "System") -> Order:
        """
        Validate a new draft and persist it as an order.

        A new customer is looked up by phone and created if needed, with the
        draft's shipping address as their address.

        Raises:
            ValidationError: If the draft is incomplete or already has an ID.
            CustomerNotFoundError: If the selected customer doesn't exist.
        """
        if not draft.is_new:
            raise ValidationError(f"Order {draft.order_id} already exists; save it instead.")
        validate_draft(draft)

        draft = self.reconciler().reconcile(draft)

        if draft.customer_mode == "new":
            customer = self.customers.find_or_create(
                phone=format_phone_number(draft.new_customer.phone),
                full_name=draft.new_customer.full_name.strip(),
                address=draft.shipping_address,
                email=draft.new_customer.email,
                second_phone=format_phone_number(draft.new_customer.second_phone) or "",
            )
        else:
            customer = self.customers.get_customer(draft.customer_id)

        order = Order(
            id=_generate_id(),
            customer_id=customer.id,
            items=list(draft.items),
            shipping_address=draft.shipping_address,
            shipping_fees=draft.shipping_fee.amount,
            total_amount=draft.total_amount,
            status=draft.status or "pending",
            notes=draft.notes,
        )
        order = self.orders.create_order(order)
        logger.info("Order %s submitted by %s", order.id, actor)
        return order

    def save_draft(self, draft: OrderDraft, actor: str) -> Order:
        """
        Save an edit draft over its stored order and log what changed.

        Raises:
            ValidationError: If the draft has no order ID.
            EmptyOrderError: If the draft has no items.
            OrderNotFoundError: If the order doesn't exist.
        """
        if draft.is_new:
            raise ValidationError("Draft has no order ID; submit it instead.")
        if not draft.items:
            raise EmptyOrderError()

        old = self.orders.get_order(draft.order_id)
        draft = self.reconciler().reconcile(draft)

        new = Order(
            id=old.id,
            customer_id=old.customer_id,
            items=list(draft.items),
            shipping_address=draft.shipping_address,
            shipping_fees=draft.shipping_fee.amount,
            total_amount=draft.total_amount,
            status=draft.status,
            notes=draft.notes,
            order_date=old.order_date,
        )
        return self.orders.save_order(
            new, note_for=lambda stored, saved: updated_note(stored, saved, actor)
        )

    def update_status(self, order_id: str, status: str, actor: str) -> Order:
        """
        Set an order's status directly and log the change.

        Any known status may be chosen; setting the current status is a no-op.

        Raises:
            InvalidStatusTransitionError: If status isn't a known order status.
        """
        order = self.orders.get_order(order_id)
        if status not in ORDER_STATUSES:
            raise InvalidStatusTransitionError(order.status, status, "unknown status")
        if status == order.status:
            return order

        old_status = order.status
        order.status = status
        order = self.orders.save_order(
            order,
            note_for=lambda stored, saved: status_changed_note(stored.status, saved.status, actor),
        )
        logger.info("Order %s status %s -> %s by %s", order.id, old_status, status, actor)
        return order

    def advance_status(self, order_id: str, actor: str) -> Order:
        """
        Move an order one step along pending -> processing -> shipped -> delivered.

        Raises:
            InvalidStatusTransitionError: If the order is delivered or cancelled.
        """
        order = self.orders.get_order(order_id)
        target = next_status(order.status)
        if target is None:
            raise InvalidStatusTransitionError(order.status, "next", "no forward transition")
        return self.update_status(order.id, target, actor)

    def cancel_order(self, order_id: str, actor: str) -> Order:
        """
        Cancel an order that isn't delivered or already cancelled.

        Raises:
            InvalidStatusTransitionError: If the order is in a terminal status.
        """
        order = self.orders.get_order(order_id)
        if not can_cancel(order.status):
            raise InvalidStatusTransitionError(order.status, "cancelled", "terminal status")
        return self.update_status(order.id, "cancelled", actor)

    def add_note(self, order_id: str, title: str, summary: str, actor: str) -> Order:
        return self.orders.append_note(order_id, InternalNote.create(title, summary, actor))

    def delete_order(self, order_id: str) -> Order:
        return self.orders.delete_order(order_id)
