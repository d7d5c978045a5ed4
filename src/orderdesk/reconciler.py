"""Order total reconciliation.

The Reconciler owns the draft's shipping fee and total. Each ``apply_*``
method takes a draft and returns a new one whose last step is always
``reconcile``, so ``total_amount == subtotal + shipping fee`` holds after
every call. Bad input (unknown product, index out of range, negative
amounts) degrades to a no-op or a clamp instead of raising.
"""

import inspect
from dataclasses import replace
from decimal import Decimal
from typing import Any

from . import pricing
from .catalog import Catalog
from .config import DEFAULT_SHIPPING_FEE
from .errors import UnknownOperationError
from .models import (
    ORDER_STATUSES,
    Address,
    Customer,
    NewCustomer,
    Order,
    OrderDraft,
    Product,
    ShippingFee,
)
from .money import non_negative
from .rates import RateTable
from .shipping import resolve_shipping_fee


class Reconciler:
    """Pure draft transitions over a catalog snapshot and rate table."""

    def __init__(
        self,
        catalog: Catalog,
        rates: RateTable,
        default_fee: Decimal = DEFAULT_SHIPPING_FEE,
    ):
        self.catalog = catalog
        self.rates = rates
        self.default_fee = default_fee

    def suggested_fee(self, draft: OrderDraft) -> Decimal:
        """The fee the resolver would pick for the draft's cart and address."""
        return resolve_shipping_fee(
            draft.items,
            draft.shipping_address,
            self.catalog,
            self.rates,
            default_fee=self.default_fee,
        )

    def reconcile(self, draft: OrderDraft) -> OrderDraft:
        """Refresh an automatic fee and re-derive the total."""
        fee = draft.shipping_fee
        if fee.follows_resolver:
            fee = ShippingFee(mode="auto", amount=self.suggested_fee(draft))
        total = pricing.subtotal(draft.items) + fee.amount
        return replace(draft, shipping_fee=fee, total_amount=total)

    # Draft construction

    def new_draft(self) -> OrderDraft:
        return self.reconcile(OrderDraft())

    def draft_from_order(self, order: Order) -> OrderDraft:
        """
        Load a persisted order into an edit draft.

        The stored fee is treated as a manual value so that opening an
        order never rewrites what was charged.
        """
        draft = OrderDraft(
            order_id=order.id,
            customer_mode="existing",
            customer_id=order.customer_id,
            items=tuple(order.items),
            shipping_address=order.shipping_address,
            shipping_fee=ShippingFee(mode="manual", amount=order.shipping_fees),
            status=order.status,
            notes=order.notes,
        )
        return self.reconcile(draft)

    # Cart

    def _resolve_product(self, product: Product | str) -> Product | None:
        if isinstance(product, Product):
            return product
        return self.catalog.get(product)

    def apply_add_item(self, draft: OrderDraft, product: Product | str) -> OrderDraft:
        resolved = self._resolve_product(product)
        if resolved is None:
            return self.reconcile(draft)
        items = pricing.add_or_increment(draft.items, resolved)
        return self.reconcile(replace(draft, items=items))

    def apply_remove_item(self, draft: OrderDraft, product_id: str) -> OrderDraft:
        items = pricing.remove_item(draft.items, product_id)
        return self.reconcile(replace(draft, items=items))

    def apply_set_quantity(self, draft: OrderDraft, product_id: str, quantity: Any) -> OrderDraft:
        items = pricing.set_quantity(draft.items, product_id, quantity)
        return self.reconcile(replace(draft, items=items))

    def apply_substitute_product(
        self, draft: OrderDraft, index: Any, new_product_id: str
    ) -> OrderDraft:
        """
        Swap the product on one line, keeping its quantity.

        Prices are re-read from the catalog since staff picked a different
        product for the line.
        """
        product = self.catalog.get(new_product_id)
        index = pricing.parse_index(index)
        if product is None or index is None or not 0 <= index < len(draft.items):
            return self.reconcile(draft)

        line = pricing.line_item_from_product(product, quantity=draft.items[index].quantity)
        items = draft.items[:index] + (line,) + draft.items[index + 1:]
        return self.reconcile(replace(draft, items=items))

    def apply_set_item_price(self, draft: OrderDraft, index: Any, price: Any) -> OrderDraft:
        """Explicit edit of a line's charged unit price (floored at 0)."""
        index = pricing.parse_index(index)
        if index is None or not 0 <= index < len(draft.items):
            return self.reconcile(draft)

        line = replace(draft.items[index], price_at_purchase=non_negative(price))
        items = draft.items[:index] + (line,) + draft.items[index + 1:]
        return self.reconcile(replace(draft, items=items))

    # Shipping fee

    def apply_set_shipping_fee_override(self, draft: OrderDraft, value: Any) -> OrderDraft:
        fee = ShippingFee(mode="manual", amount=non_negative(value))
        return self.reconcile(replace(draft, shipping_fee=fee))

    def apply_reset_shipping_fee(self, draft: OrderDraft) -> OrderDraft:
        return self.reconcile(replace(draft, shipping_fee=ShippingFee(mode="auto")))

    # Destination

    def apply_set_destination(
        self, draft: OrderDraft, governorate: str, city: str | None = None
    ) -> OrderDraft:
        """
        Set governorate and city.

        When city is omitted the current city is kept. A governorate change
        clears the city unless the given city is listed under the new
        governorate.
        """
        current = draft.shipping_address
        if governorate != current.governorate:
            if city not in self.rates.city_names(governorate):
                city = ""
        elif city is None:
            city = current.city
        address = replace(current, governorate=governorate, city=city)
        return self.reconcile(replace(draft, shipping_address=address))

    def apply_set_address_details(
        self,
        draft: OrderDraft,
        land_mark: str | None = None,
        full_address: str | None = None,
    ) -> OrderDraft:
        address = draft.shipping_address
        if land_mark is not None:
            address = replace(address, land_mark=land_mark)
        if full_address is not None:
            address = replace(address, full_address=full_address)
        return self.reconcile(replace(draft, shipping_address=address))

    # Customer

    def apply_select_customer(self, draft: OrderDraft, customer: Customer) -> OrderDraft:
        """Switch to an existing customer and ship to their stored address."""
        updated = replace(
            draft,
            customer_mode="existing",
            customer_id=customer.id,
            new_customer=NewCustomer(),
            shipping_address=customer.address,
        )
        return self.reconcile(updated)

    def apply_start_new_customer(self, draft: OrderDraft) -> OrderDraft:
        """Switch to new-customer mode with a blank form and address."""
        updated = replace(
            draft,
            customer_mode="new",
            customer_id="",
            new_customer=NewCustomer(),
            shipping_address=Address(),
        )
        return self.reconcile(updated)

    def apply_set_new_customer(
        self,
        draft: OrderDraft,
        full_name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        second_phone: str | None = None,
    ) -> OrderDraft:
        changes = {
            k: v
            for k, v in {
                "full_name": full_name,
                "phone": phone,
                "email": email,
                "second_phone": second_phone,
            }.items()
            if v is not None
        }
        new_customer = replace(draft.new_customer, **changes)
        return self.reconcile(replace(draft, new_customer=new_customer))

    # Status and notes

    def apply_set_status(self, draft: OrderDraft, status: str) -> OrderDraft:
        """Free-choice status selection. Unknown statuses are ignored."""
        if status not in ORDER_STATUSES:
            return self.reconcile(draft)
        return self.reconcile(replace(draft, status=status))

    def apply_set_notes(self, draft: OrderDraft, notes: str | None) -> OrderDraft:
        return self.reconcile(replace(draft, notes=notes or ""))

    # Dispatch by name, used by the stateless draft endpoint

    OPERATIONS = (
        "add_item",
        "remove_item",
        "set_quantity",
        "substitute_product",
        "set_item_price",
        "set_shipping_fee_override",
        "reset_shipping_fee",
        "set_destination",
        "set_address_details",
        "start_new_customer",
        "set_new_customer",
        "set_status",
        "set_notes",
    )

    def apply(self, draft: OrderDraft, operation: str, params: dict[str, Any] | None = None) -> OrderDraft:
        """
        Apply a named operation, e.g. apply(draft, "set_quantity", {"product_id": "a", "quantity": 3}).

        Customer selection needs a stored Customer and is not dispatchable.

        Raises:
            UnknownOperationError: If the operation name isn't listed in OPERATIONS
                or the params don't fit its signature.
        """
        if operation not in self.OPERATIONS:
            raise UnknownOperationError(operation)
        method = getattr(self, f"apply_{operation}")
        params = params or {}
        try:
            inspect.signature(method).bind(draft, **params)
        except TypeError as e:
            raise UnknownOperationError(operation, str(e))
        return method(draft, **params)
