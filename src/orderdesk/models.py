"""Data models for orderdesk."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
import uuid

from .config import CURRENCY
from .money import ZERO, money_to_str, parse_price


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new document ID."""
    return str(uuid.uuid4())


# Order status machine

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
FORWARD_PATH = ("pending", "processing", "shipped", "delivered")
TERMINAL_STATUSES = frozenset({"delivered", "cancelled"})

CUSTOMER_STATUSES = ("active", "archived", "deleted")


def next_status(status: str) -> str | None:
    """Return the single forward transition from status, or None if there is none."""
    if status not in FORWARD_PATH:
        return None
    idx = FORWARD_PATH.index(status)
    if idx + 1 >= len(FORWARD_PATH):
        return None
    return FORWARD_PATH[idx + 1]


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_cancel(status: str) -> bool:
    """Cancellation is reachable from any non-terminal status."""
    return status in ORDER_STATUSES and not is_terminal(status)


@dataclass
class Product:
    """A catalog entry."""

    id: str
    name: str
    price: Decimal
    sale_price: Decimal | None = None
    on_sale: bool = False
    free_delivery: bool = False
    currency: str = CURRENCY
    short_description: str = ""
    featured: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "price": money_to_str(self.price),
            "on_sale": self.on_sale,
            "free_delivery": self.free_delivery,
            "currency": self.currency,
            "short_description": self.short_description,
            "featured": self.featured,
        }
        if self.sale_price is not None:
            result["sale_price"] = money_to_str(self.sale_price)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        sale_price = data.get("sale_price")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            price=parse_price(data.get("price")),
            sale_price=parse_price(sale_price) if sale_price not in (None, "") else None,
            on_sale=bool(data.get("on_sale", False)),
            free_delivery=bool(data.get("free_delivery", False)),
            currency=data.get("currency", CURRENCY),
            short_description=data.get("short_description", ""),
            featured=bool(data.get("featured", False)),
        )


@dataclass(frozen=True)
class ProductRef:
    """Product id plus the display name captured when the line was added."""

    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductRef":
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass(frozen=True)
class OrderItem:
    """A line item. Prices are snapshots taken when the line was added."""

    product: ProductRef
    quantity: int  # >= 1
    original_price: Decimal
    price_at_purchase: Decimal
    was_on_sale: bool = False

    @property
    def line_total(self) -> Decimal:
        return self.price_at_purchase * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product": self.product.to_dict(),
            "quantity": self.quantity,
            "original_price": money_to_str(self.original_price),
            "price_at_purchase": money_to_str(self.price_at_purchase),
            "was_on_sale": self.was_on_sale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            product=ProductRef.from_dict(data["product"]),
            quantity=max(1, int(data.get("quantity", 1))),
            original_price=parse_price(data.get("original_price")),
            price_at_purchase=parse_price(data.get("price_at_purchase")),
            was_on_sale=bool(data.get("was_on_sale", False)),
        )


@dataclass(frozen=True)
class Address:
    """A delivery address."""

    governorate: str = ""
    city: str = ""
    land_mark: str = ""
    full_address: str = ""

    @property
    def is_complete(self) -> bool:
        """Whether governorate and city are both set (enough for a fee lookup)."""
        return bool(self.governorate) and bool(self.city)

    def to_dict(self) -> dict[str, Any]:
        return {
            "governorate": self.governorate,
            "city": self.city,
            "land_mark": self.land_mark,
            "full_address": self.full_address,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Address":
        data = data or {}
        return cls(
            governorate=data.get("governorate", ""),
            city=data.get("city", ""),
            land_mark=data.get("land_mark", ""),
            full_address=data.get("full_address", ""),
        )


@dataclass(frozen=True)
class InternalNote:
    """An audit-log entry attached to an order. Never edited once written."""

    title: str
    summary: str
    timestamp: str
    created_by: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "timestamp": self.timestamp,
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InternalNote":
        return cls(
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            timestamp=data.get("timestamp", ""),
            created_by=data.get("created_by", "system"),
        )

    @classmethod
    def create(cls, title: str, summary: str, created_by: str = "system") -> "InternalNote":
        return cls(title=title, summary=summary, timestamp=_utc_now(), created_by=created_by)


@dataclass
class Customer:
    """A customer record, keyed by normalized phone number."""

    id: str
    full_name: str
    phone: str
    address: Address = field(default_factory=Address)
    second_phone: str = ""
    email: str = ""
    status: str = "active"  # "active" | "archived" | "deleted"
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "second_phone": self.second_phone,
            "email": self.email,
            "address": self.address.to_dict(),
            "status": self.status,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Customer":
        return cls(
            id=data["id"],
            full_name=data.get("full_name", ""),
            phone=data.get("phone", data["id"]),
            second_phone=data.get("second_phone", ""),
            email=data.get("email", ""),
            address=Address.from_dict(data.get("address")),
            status=data.get("status", "active"),
            created_at=data.get("created_at", ""),
        )


@dataclass
class Order:
    """A persisted order."""

    id: str
    customer_id: str
    items: list[OrderItem]
    shipping_address: Address
    shipping_fees: Decimal
    total_amount: Decimal
    status: str = "pending"
    notes: str = ""
    order_date: str = field(default_factory=_utc_now)
    internal_notes: list[InternalNote] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "order_date": self.order_date,
            "shipping_address": self.shipping_address.to_dict(),
            "shipping_fees": money_to_str(self.shipping_fees),
            "total_amount": money_to_str(self.total_amount),
            "status": self.status,
            "notes": self.notes,
            "internal_notes": [n.to_dict() for n in self.internal_notes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            customer_id=data.get("customer_id", ""),
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            order_date=data.get("order_date", ""),
            shipping_address=Address.from_dict(data.get("shipping_address")),
            shipping_fees=parse_price(data.get("shipping_fees")),
            total_amount=parse_price(data.get("total_amount")),
            status=data.get("status", "pending"),
            notes=data.get("notes") or "",
            internal_notes=[InternalNote.from_dict(n) for n in data.get("internal_notes", [])],
        )


# Models for in-memory order drafts


FEE_MODES = ("unset", "auto", "manual")
CUSTOMER_MODES = ("existing", "new")


@dataclass(frozen=True)
class ShippingFee:
    """
    Shipping fee with its provenance.

    - "unset": nothing resolved yet
    - "auto": amount comes from the fee resolver and follows cart/address changes
    - "manual": amount was typed by staff and is kept until reset to auto
    """

    mode: str = "unset"
    amount: Decimal = ZERO

    @property
    def follows_resolver(self) -> bool:
        return self.mode != "manual"


@dataclass(frozen=True)
class NewCustomer:
    """Contact details typed in while creating a customer alongside an order."""

    full_name: str = ""
    phone: str = ""
    email: str = ""
    second_phone: str = ""


@dataclass(frozen=True)
class OrderDraft:
    """
    The in-memory order being created or edited.

    Drafts are immutable; every reconciler operation returns a new draft.
    The destination address for both customer modes is shipping_address.
    """

    order_id: str | None = None  # None until the order is persisted
    customer_mode: str = "existing"  # "existing" | "new"
    customer_id: str = ""
    new_customer: NewCustomer = field(default_factory=NewCustomer)
    items: tuple[OrderItem, ...] = ()
    shipping_address: Address = field(default_factory=Address)
    shipping_fee: ShippingFee = field(default_factory=ShippingFee)
    total_amount: Decimal = ZERO
    status: str = "pending"
    notes: str = ""

    @property
    def is_new(self) -> bool:
        return self.order_id is None

    @property
    def shipping_fees(self) -> Decimal:
        return self.shipping_fee.amount

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), ZERO)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_mode": self.customer_mode,
            "customer_id": self.customer_id,
            "new_customer": {
                "full_name": self.new_customer.full_name,
                "phone": self.new_customer.phone,
                "email": self.new_customer.email,
                "second_phone": self.new_customer.second_phone,
            },
            "items": [i.to_dict() for i in self.items],
            "shipping_address": self.shipping_address.to_dict(),
            "shipping_fee": {
                "mode": self.shipping_fee.mode,
                "amount": money_to_str(self.shipping_fee.amount),
            },
            "subtotal": money_to_str(self.subtotal),
            "total_amount": money_to_str(self.total_amount),
            "status": self.status,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderDraft":
        fee = data.get("shipping_fee") or {}
        new_customer = data.get("new_customer") or {}
        mode = fee.get("mode", "unset")
        customer_mode = data.get("customer_mode", "existing")
        return cls(
            order_id=data.get("order_id"),
            customer_mode=customer_mode if customer_mode in CUSTOMER_MODES else "existing",
            customer_id=data.get("customer_id", ""),
            new_customer=NewCustomer(
                full_name=new_customer.get("full_name", ""),
                phone=new_customer.get("phone", ""),
                email=new_customer.get("email", ""),
                second_phone=new_customer.get("second_phone", ""),
            ),
            items=tuple(OrderItem.from_dict(i) for i in data.get("items", [])),
            shipping_address=Address.from_dict(data.get("shipping_address")),
            shipping_fee=ShippingFee(
                mode=mode if mode in FEE_MODES else "unset",
                amount=parse_price(fee.get("amount")),
            ),
            total_amount=parse_price(data.get("total_amount")),
            status=data.get("status", "pending"),
            notes=data.get("notes") or "",
        )
