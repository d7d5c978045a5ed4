"""JSON document stores for products, customers and orders."""

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from .audit import created_note
from .config import DATA_DIR
from .errors import (
    CustomerNotFoundError,
    InvalidPhoneError,
    InvalidSchemaVersionError,
    OrderNotFoundError,
    ProductExistsError,
    ProductNotFoundError,
    ValidationError,
)
from .models import (
    CUSTOMER_STATUSES,
    Address,
    Customer,
    InternalNote,
    Order,
    Product,
    _generate_id,
    _utc_now,
)
from .utils import is_valid_phone

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class JsonCollection:
    """
    A list of documents kept in one JSON file.

    Reads are lock-free; every read-modify-write runs under an exclusive
    lock file and the file is replaced atomically.
    """

    filename = ""
    key = ""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize the collection.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.config_dir = config_dir or DATA_DIR
        self.config_path = self.config_dir / self.filename

    def _ensure_dir(self) -> None:
        """Ensure data directory exists."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the collection file for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.config_dir / f".{self.key}.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load_data(self) -> dict[str, Any]:
        """
        Load collection data from disk.

        Raises:
            InvalidSchemaVersionError: If schema version is unsupported.
        """
        if not self.config_path.exists():
            return {"schema_version": SCHEMA_VERSION, self.key: []}

        with open(self.config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

        data.setdefault(self.key, [])
        return data

    def _save_data(self, data: dict[str, Any]) -> None:
        """Save collection data to disk atomically."""
        self._ensure_dir()

        fd, temp_path = tempfile.mkstemp(
            dir=self.config_dir, prefix=f".{self.key}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, self.config_path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _documents(self) -> list[dict[str, Any]]:
        return self._load_data()[self.key]


class ProductStore(JsonCollection):
    """Product catalog storage."""

    filename = "products.json"
    key = "products"

    def list_products(self) -> list[Product]:
        """List products sorted by name."""
        products = [Product.from_dict(p) for p in self._documents()]
        return sorted(products, key=lambda p: p.name.lower())

    def get_product(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        for p in self._documents():
            if p["id"] == product_id:
                return Product.from_dict(p)
        raise ProductNotFoundError(product_id)

    def add_product(self, product: Product) -> Product:
        """
        Add a product. An empty ID is replaced with a generated one.

        Raises:
            ProductExistsError: If the ID is already taken.
        """
        if not product.id:
            product.id = _generate_id()

        with self._lock():
            data = self._load_data()
            if any(p["id"] == product.id for p in data["products"]):
                raise ProductExistsError(product.id)
            data["products"].append(product.to_dict())
            self._save_data(data)

        logger.info("Added product %s (%s)", product.id, product.name)
        return product

    def update_product(self, product: Product) -> Product:
        """
        Replace a stored product.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            for i, existing in enumerate(data["products"]):
                if existing["id"] == product.id:
                    data["products"][i] = product.to_dict()
                    self._save_data(data)
                    return product

        raise ProductNotFoundError(product.id)

    def delete_product(self, product_id: str) -> Product:
        """
        Delete a product. Orders keep their own name and price snapshots.

        Raises:
            ProductNotFoundError: If product doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            for i, p in enumerate(data["products"]):
                if p["id"] == product_id:
                    removed = Product.from_dict(data["products"].pop(i))
                    self._save_data(data)
                    logger.info("Deleted product %s", product_id)
                    return removed

        raise ProductNotFoundError(product_id)


class CustomerStore(JsonCollection):
    """Customer storage. Customers are keyed by normalized phone number."""

    filename = "customers.json"
    key = "customers"

    def list_customers(self, include_inactive: bool = False) -> list[Customer]:
        """
        List customers sorted by name.

        Args:
            include_inactive: If True, include archived and deleted customers.
        """
        customers = [Customer.from_dict(c) for c in self._documents()]
        if not include_inactive:
            customers = [c for c in customers if c.status == "active"]
        return sorted(customers, key=lambda c: c.full_name.lower())

    def search_customers(self, term: str, include_inactive: bool = False) -> list[Customer]:
        """Case-insensitive match on name, or substring match on phone."""
        needle = (term or "").strip().lower()
        customers = self.list_customers(include_inactive=include_inactive)
        if not needle:
            return customers
        return [
            c
            for c in customers
            if needle in c.full_name.lower() or needle in c.phone
        ]

    def get_customer(self, customer_id: str) -> Customer:
        """
        Get a customer by ID.

        Raises:
            CustomerNotFoundError: If customer doesn't exist.
        """
        for c in self._documents():
            if c["id"] == customer_id:
                return Customer.from_dict(c)
        raise CustomerNotFoundError(customer_id)

    def find_or_create(
        self,
        phone: str,
        full_name: str,
        address: Address | None = None,
        email: str = "",
        second_phone: str = "",
    ) -> Customer:
        """
        Return the customer with this phone, creating an active one if missing.

        An existing record is returned as-is; the supplied details are only
        used for a new record.

        Raises:
            InvalidPhoneError: If phone isn't a normalized 11-digit number.
        """
        if not is_valid_phone(phone):
            raise InvalidPhoneError(phone)

        with self._lock():
            data = self._load_data()
            for c in data["customers"]:
                if c["id"] == phone:
                    return Customer.from_dict(c)

            customer = Customer(
                id=phone,
                full_name=full_name,
                phone=phone,
                address=address or Address(),
                email=email,
                second_phone=second_phone,
            )
            data["customers"].append(customer.to_dict())
            self._save_data(data)

        logger.info("Created customer %s", phone)
        return customer

    def update_customer(
        self,
        customer_id: str,
        full_name: str | None = None,
        email: str | None = None,
        second_phone: str | None = None,
        address: Address | None = None,
        status: str | None = None,
    ) -> Customer:
        """
        Update a customer's details. The phone number is the ID and can't change.

        Raises:
            CustomerNotFoundError: If customer doesn't exist.
            ValidationError: If status isn't a known customer status.
        """
        if status is not None and status not in CUSTOMER_STATUSES:
            raise ValidationError(f"Unknown customer status: {status}")

        with self._lock():
            data = self._load_data()
            for i, c in enumerate(data["customers"]):
                if c["id"] != customer_id:
                    continue

                customer = Customer.from_dict(c)
                if full_name is not None:
                    customer.full_name = full_name
                if email is not None:
                    customer.email = email
                if second_phone is not None:
                    customer.second_phone = second_phone
                if address is not None:
                    customer.address = address
                if status is not None:
                    customer.status = status

                data["customers"][i] = customer.to_dict()
                self._save_data(data)
                return customer

        raise CustomerNotFoundError(customer_id)

    def delete_customer(self, customer_id: str) -> Customer:
        """
        Hard-delete a customer. Their orders are kept.

        Raises:
            CustomerNotFoundError: If customer doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            for i, c in enumerate(data["customers"]):
                if c["id"] == customer_id:
                    removed = Customer.from_dict(data["customers"].pop(i))
                    self._save_data(data)
                    logger.info("Deleted customer %s", customer_id)
                    return removed

        raise CustomerNotFoundError(customer_id)


class OrderStore(JsonCollection):
    """Order storage."""

    filename = "orders.json"
    key = "orders"

    def list_orders(self, status: str | None = None) -> list[Order]:
        """
        List orders, newest first.

        Args:
            status: Only return orders with this status.
        """
        orders = [Order.from_dict(o) for o in self._documents()]
        if status:
            orders = [o for o in orders if o.status == status]
        return sorted(orders, key=lambda o: o.order_date, reverse=True)

    def orders_for_customer(self, customer_id: str) -> list[Order]:
        """List a customer's orders, newest first."""
        return [o for o in self.list_orders() if o.customer_id == customer_id]

    def _find_index(self, orders: list[dict[str, Any]], order_id: str) -> int:
        """
        Find an order by ID (supports partial ID matching).

        Raises:
            OrderNotFoundError: If no order or several orders match.
        """
        exact = [i for i, o in enumerate(orders) if o["id"] == order_id]
        if exact:
            return exact[0]

        matches = [i for i, o in enumerate(orders) if o["id"].startswith(order_id)]
        if not order_id or not matches:
            raise OrderNotFoundError(order_id)
        if len(matches) > 1:
            raise OrderNotFoundError(f"{order_id} (ambiguous, matches {len(matches)} orders)")
        return matches[0]

    def get_order(self, order_id: str) -> Order:
        """
        Get an order by ID (supports partial ID matching).

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        orders = self._documents()
        return Order.from_dict(orders[self._find_index(orders, order_id)])

    def create_order(self, order: Order) -> Order:
        """
        Persist a new order and log its creation.

        A missing ID or status is filled in; the "Order Created" note is
        appended after any notes the order already carries.
        """
        if not order.id:
            order.id = _generate_id()
        if not order.status:
            order.status = "pending"
        order.order_date = order.order_date or _utc_now()
        order.internal_notes = list(order.internal_notes) + [created_note()]

        with self._lock():
            data = self._load_data()
            data["orders"].append(order.to_dict())
            self._save_data(data)

        logger.info(
            "Created order %s for customer %s (total %s)",
            order.id,
            order.customer_id,
            order.total_amount,
        )
        return order

    def save_order(
        self,
        order: Order,
        note_for: Callable[[Order, Order], InternalNote] | None = None,
    ) -> Order:
        """
        Replace an order's items, status, address, notes and totals.

        The stored customer, order date and internal notes are kept. When
        note_for is given it is called with the stored and the replaced order,
        and its note is appended in the same write.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            idx = self._find_index(data["orders"], order.id)
            old = Order.from_dict(data["orders"][idx])
            stored = Order.from_dict(data["orders"][idx])

            stored.items = list(order.items)
            stored.status = order.status
            stored.shipping_address = order.shipping_address
            stored.notes = order.notes
            stored.shipping_fees = order.shipping_fees
            stored.total_amount = order.total_amount
            if note_for is not None:
                stored.internal_notes.append(note_for(old, stored))

            data["orders"][idx] = stored.to_dict()
            self._save_data(data)

        logger.info("Saved order %s", stored.id)
        return stored

    def append_note(self, order_id: str, note: InternalNote) -> Order:
        """
        Append an internal note to an order.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            idx = self._find_index(data["orders"], order_id)
            data["orders"][idx].setdefault("internal_notes", []).append(note.to_dict())
            self._save_data(data)
            order = Order.from_dict(data["orders"][idx])

        logger.debug("Appended note %r to order %s", note.title, order.id)
        return order

    def delete_order(self, order_id: str) -> Order:
        """
        Delete an order.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        with self._lock():
            data = self._load_data()
            idx = self._find_index(data["orders"], order_id)
            removed = Order.from_dict(data["orders"].pop(idx))
            self._save_data(data)

        logger.info("Deleted order %s", removed.id)
        return removed
