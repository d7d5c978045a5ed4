"""Tests for OrderService workflows."""

from decimal import Decimal

import pytest

from orderdesk.errors import (
    CustomerNotFoundError,
    CustomerRequiredError,
    EmptyOrderError,
    InvalidPhoneError,
    InvalidStatusTransitionError,
    MissingFieldError,
    ValidationError,
)
from orderdesk.models import Address
from orderdesk.service import OrderService

from .conftest import CAIRO, DOKKI, GIZA, NASR_CITY


@pytest.fixture
def service(temp_dir, rates, product_a, product_b, product_free):
    svc = OrderService(temp_dir, rates=rates)
    for product in (product_a, product_b, product_free):
        svc.products.add_product(product)
    return svc


def new_customer_draft(service, phone="٠١٠ ١٢٣٤ ٥٦٧٨"):
    r = service.reconciler()
    draft = r.apply_start_new_customer(r.new_draft())
    draft = r.apply_set_new_customer(draft, full_name="Mona Ali", phone=phone)
    draft = r.apply_set_destination(draft, CAIRO, NASR_CITY)
    draft = r.apply_set_address_details(draft, full_address="1 Street")
    draft = r.apply_add_item(draft, "a")
    draft = r.apply_add_item(draft, "b")
    return draft


@pytest.fixture
def placed_order(service):
    return service.submit_draft(new_customer_draft(service), actor="staff@example.com")


class TestSubmit:
    def test_new_customer_is_created_with_shipping_address(self, service):
        order = service.submit_draft(new_customer_draft(service))

        customer = service.customers.get_customer("01012345678")
        assert customer.full_name == "Mona Ali"
        assert customer.address.city == NASR_CITY
        assert order.customer_id == "01012345678"

    def test_order_totals(self, placed_order):
        assert placed_order.subtotal == Decimal("160")
        assert placed_order.shipping_fees == Decimal("60")
        assert placed_order.total_amount == Decimal("220")
        assert placed_order.status == "pending"
        assert placed_order.internal_notes[0].title == "Order Created"

    def test_existing_customer(self, service, placed_order):
        r = service.reconciler()
        customer = service.customers.get_customer(placed_order.customer_id)
        draft = r.apply_select_customer(r.apply_add_item(r.new_draft(), "a"), customer)

        order = service.submit_draft(draft)
        assert order.customer_id == customer.id
        assert order.shipping_address == customer.address
        assert len(service.orders.orders_for_customer(customer.id)) == 2

    def test_empty_order_rejected(self, service):
        draft = new_customer_draft(service)
        r = service.reconciler()
        draft = r.apply_remove_item(r.apply_remove_item(draft, "a"), "b")
        with pytest.raises(EmptyOrderError):
            service.submit_draft(draft)

    def test_short_phone_rejected(self, service):
        with pytest.raises(InvalidPhoneError):
            service.submit_draft(new_customer_draft(service, phone="0101234"))

    def test_country_prefix_is_stripped(self, service):
        order = service.submit_draft(new_customer_draft(service, phone="+201012345678"))
        assert order.customer_id == "01012345678"

    def test_missing_city_rejected(self, service):
        r = service.reconciler()
        draft = r.apply_set_destination(new_customer_draft(service), GIZA)
        with pytest.raises(MissingFieldError) as exc_info:
            service.submit_draft(draft)
        assert exc_info.value.field == "city"

    def test_missing_full_address_rejected(self, service):
        r = service.reconciler()
        draft = r.apply_set_address_details(new_customer_draft(service), full_address="  ")
        with pytest.raises(MissingFieldError):
            service.submit_draft(draft)

    def test_customer_required(self, service):
        r = service.reconciler()
        draft = r.apply_add_item(r.new_draft(), "a")
        with pytest.raises(CustomerRequiredError):
            service.submit_draft(draft)

    def test_unknown_existing_customer(self, service):
        r = service.reconciler()
        draft = r.apply_add_item(r.new_draft(), "a")
        draft = r.apply_select_customer(
            draft, service.customers.find_or_create("01012345678", "Mona")
        )
        service.customers.delete_customer("01012345678")
        with pytest.raises(CustomerNotFoundError):
            service.submit_draft(draft)

    def test_failed_submit_leaves_draft_untouched(self, service):
        draft = new_customer_draft(service, phone="123")
        before = draft
        with pytest.raises(InvalidPhoneError):
            service.submit_draft(draft)
        assert draft == before
        assert service.orders.list_orders() == []

    def test_submitting_an_edit_draft_rejected(self, service, placed_order):
        with pytest.raises(ValidationError):
            service.submit_draft(service.load_draft(placed_order.id))


class TestSaveDraft:
    def test_save_replaces_and_logs_changes(self, service, placed_order):
        r = service.reconciler()
        draft = service.load_draft(placed_order.id)
        draft = r.apply_set_quantity(draft, "a", 3)
        draft = r.apply_set_status(draft, "processing")
        draft = r.apply_set_notes(draft, "Ring twice")

        saved = service.save_draft(draft, actor="staff@example.com")

        assert saved.total_amount == Decimal("420")
        assert saved.status == "processing"
        assert saved.notes == "Ring twice"
        note = saved.internal_notes[-1]
        assert note.title == "Order Updated"
        assert note.created_by == "staff@example.com"
        assert note.summary.startswith("Order details updated.")
        assert "Status: pending -> processing." in note.summary
        assert "Items updated." in note.summary
        assert "Notes updated." in note.summary
        assert "Total: EGP 220.00 -> EGP 420.00." in note.summary
        assert "Shipping" not in note.summary

    def test_loaded_fee_kept_after_address_change(self, service, placed_order):
        r = service.reconciler()
        draft = service.load_draft(placed_order.id)
        draft = r.apply_set_destination(draft, GIZA, DOKKI)

        saved = service.save_draft(draft, actor="staff")
        assert saved.shipping_fees == Decimal("60")
        assert "Address updated." in saved.internal_notes[-1].summary

    def test_reset_fee_on_edit(self, service, placed_order):
        r = service.reconciler()
        draft = service.load_draft(placed_order.id)
        draft = r.apply_set_destination(draft, GIZA, DOKKI)
        draft = r.apply_reset_shipping_fee(draft)

        saved = service.save_draft(draft, actor="staff")
        assert saved.shipping_fees == Decimal("45")
        assert saved.total_amount == Decimal("205")
        assert "Shipping: EGP 60.00 -> EGP 45.00." in saved.internal_notes[-1].summary

    def test_save_empty_rejected(self, service, placed_order):
        r = service.reconciler()
        draft = service.load_draft(placed_order.id)
        draft = r.apply_remove_item(r.apply_remove_item(draft, "a"), "b")
        with pytest.raises(EmptyOrderError):
            service.save_draft(draft, actor="staff")

    def test_save_new_draft_rejected(self, service):
        with pytest.raises(ValidationError):
            service.save_draft(new_customer_draft(service), actor="staff")


class TestStatus:
    def test_advance_through_forward_path(self, service, placed_order):
        statuses = []
        for _ in range(3):
            statuses.append(service.advance_status(placed_order.id, "staff").status)
        assert statuses == ["processing", "shipped", "delivered"]

    def test_advance_terminal_raises(self, service, placed_order):
        service.update_status(placed_order.id, "delivered", "staff")
        with pytest.raises(InvalidStatusTransitionError):
            service.advance_status(placed_order.id, "staff")

    def test_cancel_logs_status_note(self, service, placed_order):
        order = service.cancel_order(placed_order.id, "staff@example.com")

        assert order.status == "cancelled"
        note = order.internal_notes[-1]
        assert note.title == "Status Changed: pending -> cancelled"
        assert note.summary == "Order status updated by staff@example.com."

    @pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
    def test_cancel_terminal_raises(self, service, placed_order, terminal):
        service.update_status(placed_order.id, terminal, "staff")
        with pytest.raises(InvalidStatusTransitionError):
            service.cancel_order(placed_order.id, "staff")

    def test_free_choice_status(self, service, placed_order):
        service.update_status(placed_order.id, "delivered", "staff")
        order = service.update_status(placed_order.id, "processing", "staff")
        assert order.status == "processing"

    def test_same_status_is_noop(self, service, placed_order):
        order = service.update_status(placed_order.id, "pending", "staff")
        assert len(order.internal_notes) == 1

    def test_unknown_status_raises(self, service, placed_order):
        with pytest.raises(InvalidStatusTransitionError):
            service.update_status(placed_order.id, "lost", "staff")


class TestNotesAndDelete:
    def test_add_note(self, service, placed_order):
        order = service.add_note(placed_order.id, "Called", "Customer confirmed", "staff")
        assert order.internal_notes[-1].summary == "Customer confirmed"

    def test_delete_keeps_customer(self, service, placed_order):
        service.delete_order(placed_order.id)
        assert service.orders.list_orders() == []
        assert service.customers.get_customer(placed_order.customer_id)

    def test_deleted_product_still_shown_on_order(self, service, placed_order):
        service.products.delete_product("a")
        order = service.orders.get_order(placed_order.id)
        assert order.items[0].product.name == "Product A"
        assert service.load_draft(order.id).total_amount == Decimal("220")


class TestAddressModel:
    def test_address_complete(self):
        assert Address(CAIRO, NASR_CITY).is_complete
        assert not Address(CAIRO, "").is_complete
