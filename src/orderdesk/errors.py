"""Custom exceptions for orderdesk."""


class OrderdeskError(Exception):
    """Base exception for all orderdesk errors."""

    pass


class InvalidSchemaVersionError(OrderdeskError):
    """Raised when a stored collection has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


class OrderNotFoundError(OrderdeskError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class CustomerNotFoundError(OrderdeskError):
    """Raised when a customer ID doesn't exist."""

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class ProductNotFoundError(OrderdeskError):
    """Raised when a product ID doesn't exist in the store or catalog snapshot."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class ProductExistsError(OrderdeskError):
    """Raised when adding a product whose ID is already taken."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product already exists: {product_id}")


class InvalidStatusTransitionError(OrderdeskError):
    """Raised when an order cannot move to the requested status."""

    def __init__(self, current: str, requested: str, reason: str | None = None):
        self.current = current
        self.requested = requested
        msg = f"Cannot change order status from {current} to {requested}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidRateTableError(OrderdeskError):
    """Raised when a shipping rate table file cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Invalid shipping rate table {path}: {reason}")


# Submission-boundary validation


class ValidationError(OrderdeskError):
    """Raised when a draft cannot be submitted or saved."""

    pass


class EmptyOrderError(ValidationError):
    """Raised when an order has no items."""

    def __init__(self):
        super().__init__("Please add at least one product to the order.")


class InvalidPhoneError(ValidationError):
    """Raised when a phone number doesn't normalize to 11 digits."""

    def __init__(self, phone: str | None):
        self.phone = phone
        super().__init__(f"A valid 11-digit phone number is required (got {phone!r}).")


class MissingFieldError(ValidationError):
    """Raised when a required new-customer field is empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"New customer requires a {field.replace('_', ' ')}.")


class CustomerRequiredError(ValidationError):
    """Raised when no customer is selected and no new customer is supplied."""

    def __init__(self):
        super().__init__(
            "Please select a customer or complete the new customer details."
        )


class UnknownOperationError(OrderdeskError):
    """Raised when a named draft operation doesn't exist or gets bad parameters."""

    def __init__(self, operation: str, reason: str | None = None):
        self.operation = operation
        msg = f"Unknown draft operation: {operation}"
        if reason:
            msg = f"Invalid parameters for draft operation {operation}: {reason}"
        super().__init__(msg)
