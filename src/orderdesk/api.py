"""FastAPI REST API for orderdesk."""

from dataclasses import replace
from typing import Any, Optional, Union

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .catalog import Catalog
from .errors import (
    CustomerNotFoundError,
    CustomerRequiredError,
    EmptyOrderError,
    InvalidPhoneError,
    InvalidRateTableError,
    InvalidSchemaVersionError,
    InvalidStatusTransitionError,
    MissingFieldError,
    OrderdeskError,
    OrderNotFoundError,
    ProductExistsError,
    ProductNotFoundError,
    UnknownOperationError,
    ValidationError,
)
from .models import Address, Customer, Order, OrderDraft, Product
from .money import money_to_str, parse_price
from .service import OrderService
from .shipping import resolve_shipping_fee
from .utils import format_phone_number


# --- Pydantic Schemas ---


class ProductSchema(BaseModel):
    id: str
    name: str
    price: str  # decimal string, e.g. "150.50"
    sale_price: Optional[str] = None
    on_sale: bool = False
    free_delivery: bool = False
    currency: str
    short_description: str = ""
    featured: bool = False


class ProductCreateRequest(BaseModel):
    """Request body for adding a product. Prices may be numbers or strings like "150 EGP"."""

    id: Optional[str] = Field(None, description="Product ID (generated if omitted)")
    name: str
    price: Union[str, float]
    sale_price: Optional[Union[str, float]] = None
    on_sale: bool = False
    free_delivery: bool = False
    short_description: str = ""
    featured: bool = False


class ProductUpdateRequest(BaseModel):
    """Request body for updating a product."""

    name: Optional[str] = None
    price: Optional[Union[str, float]] = None
    sale_price: Optional[Union[str, float]] = None
    on_sale: Optional[bool] = None
    free_delivery: Optional[bool] = None
    short_description: Optional[str] = None
    featured: Optional[bool] = None


class ProductListResponse(BaseModel):
    products: list[ProductSchema]
    count: int


class AddressSchema(BaseModel):
    governorate: str = ""
    city: str = ""
    land_mark: str = ""
    full_address: str = ""


class CustomerSchema(BaseModel):
    id: str
    full_name: str
    phone: str
    second_phone: str = ""
    email: str = ""
    address: AddressSchema
    status: str  # "active"|"archived"|"deleted"
    created_at: str


class CustomerCreateRequest(BaseModel):
    phone: str = Field(..., description="Phone number; normalized to 11 digits")
    full_name: str
    email: str = ""
    second_phone: str = ""
    address: AddressSchema = Field(default_factory=AddressSchema)


class CustomerUpdateRequest(BaseModel):
    """Request body for updating a customer. The phone number cannot change."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    second_phone: Optional[str] = None
    address: Optional[AddressSchema] = None
    status: Optional[str] = Field(None, pattern="^(active|archived|deleted)$")


class CustomerListResponse(BaseModel):
    customers: list[CustomerSchema]
    count: int


class ProductRefSchema(BaseModel):
    id: str
    name: str


class OrderItemSchema(BaseModel):
    product: ProductRefSchema
    quantity: int
    original_price: str
    price_at_purchase: str
    was_on_sale: bool = False


class InternalNoteSchema(BaseModel):
    title: str
    summary: str
    timestamp: str
    created_by: str


class OrderSchema(BaseModel):
    id: str
    customer_id: str
    items: list[OrderItemSchema]
    order_date: str
    shipping_address: AddressSchema
    shipping_fees: str
    total_amount: str
    status: str  # "pending"|"processing"|"shipped"|"delivered"|"cancelled"
    notes: str = ""
    internal_notes: list[InternalNoteSchema] = []


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class NewCustomerSchema(BaseModel):
    full_name: str = ""
    phone: str = ""
    email: str = ""
    second_phone: str = ""


class ShippingFeeSchema(BaseModel):
    mode: str = "unset"  # "unset"|"auto"|"manual"
    amount: str = "0"


class DraftSchema(BaseModel):
    """An order draft as exchanged with clients. Drafts are not stored server-side."""

    order_id: Optional[str] = None
    customer_mode: str = "existing"  # "existing"|"new"
    customer_id: str = ""
    new_customer: NewCustomerSchema = Field(default_factory=NewCustomerSchema)
    items: list[OrderItemSchema] = []
    shipping_address: AddressSchema = Field(default_factory=AddressSchema)
    shipping_fee: ShippingFeeSchema = Field(default_factory=ShippingFeeSchema)
    subtotal: str = "0"
    total_amount: str = "0"
    status: str = "pending"
    notes: str = ""


class DraftOperationRequest(BaseModel):
    draft: DraftSchema
    operation: str = Field(..., description="Operation name, e.g. 'add_item' or 'set_destination'")
    params: dict[str, Any] = Field(default_factory=dict)


class DraftSelectCustomerRequest(BaseModel):
    draft: DraftSchema
    customer_id: str


class DraftSubmitRequest(BaseModel):
    draft: DraftSchema
    actor: str = "System"


class StatusUpdateRequest(BaseModel):
    status: str
    actor: str


class ActorRequest(BaseModel):
    actor: str


class NoteCreateRequest(BaseModel):
    title: str
    summary: str = ""
    actor: str


class CitySchema(BaseModel):
    name: str
    fee: str


class ShippingFeeQuoteResponse(BaseModel):
    governorate: str
    city: str
    fee: str
    listed: bool  # False when the default fee was used
    currency: str


# --- Helper Functions ---


def get_service() -> OrderService:
    """Get an OrderService over the configured data directory."""
    return OrderService()


def product_to_schema(product: Product) -> ProductSchema:
    return ProductSchema(**product.to_dict())


def customer_to_schema(customer: Customer) -> CustomerSchema:
    return CustomerSchema(**customer.to_dict())


def order_to_schema(order: Order) -> OrderSchema:
    return OrderSchema(**order.to_dict())


def draft_to_schema(draft: OrderDraft) -> DraftSchema:
    return DraftSchema(**draft.to_dict())


def schema_to_draft(schema: DraftSchema) -> OrderDraft:
    return OrderDraft.from_dict(schema.model_dump())


# --- FastAPI App ---


app = FastAPI(
    title="orderdesk API",
    description="REST API for back-office order pricing and management",
    version=__version__,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    OrderNotFoundError: 404,
    CustomerNotFoundError: 404,
    ProductNotFoundError: 404,
    ProductExistsError: 409,
    InvalidStatusTransitionError: 409,
    ValidationError: 400,
    EmptyOrderError: 400,
    InvalidPhoneError: 400,
    MissingFieldError: 400,
    CustomerRequiredError: 400,
    UnknownOperationError: 400,
    InvalidSchemaVersionError: 500,
    InvalidRateTableError: 500,
}


@app.exception_handler(OrderdeskError)
async def orderdesk_error_handler(request: Request, exc: OrderdeskError) -> JSONResponse:
    """Map OrderdeskError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    service = get_service()
    try:
        return {
            "status": "ok",
            "order_count": len(service.orders.list_orders()),
            "product_count": len(service.products.list_products()),
        }
    except OrderdeskError as e:
        return {
            "status": "error",
            "detail": str(e),
        }


# --- Product Endpoints ---


@app.get("/api/products", response_model=ProductListResponse)
def list_products():
    products = get_service().products.list_products()
    return ProductListResponse(
        products=[product_to_schema(p) for p in products],
        count=len(products),
    )


@app.post("/api/products", response_model=ProductSchema, status_code=201)
def create_product(request: ProductCreateRequest):
    """Add a product to the catalog."""
    product = Product(
        id=request.id or "",
        name=request.name,
        price=parse_price(request.price),
        sale_price=parse_price(request.sale_price) if request.sale_price is not None else None,
        on_sale=request.on_sale,
        free_delivery=request.free_delivery,
        short_description=request.short_description,
        featured=request.featured,
    )
    product = get_service().products.add_product(product)
    return product_to_schema(product)


@app.get("/api/products/{product_id}", response_model=ProductSchema)
def get_product(product_id: str):
    return product_to_schema(get_service().products.get_product(product_id))


@app.patch("/api/products/{product_id}", response_model=ProductSchema)
def update_product(product_id: str, request: ProductUpdateRequest):
    """
    Update a product.

    Orders already placed keep the prices they were charged.
    """
    store = get_service().products
    product = store.get_product(product_id)

    update_data = request.model_dump(exclude_unset=True)

    if "name" in update_data:
        product.name = request.name
    if "price" in update_data:
        product.price = parse_price(request.price)
    if "sale_price" in update_data:
        product.sale_price = (
            parse_price(request.sale_price) if request.sale_price is not None else None
        )
    for field_name in ("on_sale", "free_delivery", "featured", "short_description"):
        if update_data.get(field_name) is not None:
            setattr(product, field_name, update_data[field_name])

    store.update_product(product)
    return product_to_schema(product)


@app.delete("/api/products/{product_id}", response_model=ProductSchema)
def delete_product(product_id: str):
    return product_to_schema(get_service().products.delete_product(product_id))


# --- Customer Endpoints ---


@app.get("/api/customers", response_model=CustomerListResponse)
def list_customers(
    q: Optional[str] = Query(default=None, description="Search by name or phone"),
    include_inactive: bool = Query(default=False),
):
    """List customers, optionally filtered by a search term."""
    store = get_service().customers
    if q:
        customers = store.search_customers(q, include_inactive=include_inactive)
    else:
        customers = store.list_customers(include_inactive=include_inactive)
    return CustomerListResponse(
        customers=[customer_to_schema(c) for c in customers],
        count=len(customers),
    )


@app.post("/api/customers", response_model=CustomerSchema, status_code=201)
def create_customer(request: CustomerCreateRequest):
    """Find a customer by phone, or create one."""
    customer = get_service().customers.find_or_create(
        phone=format_phone_number(request.phone) or "",
        full_name=request.full_name,
        address=Address(**request.address.model_dump()),
        email=request.email,
        second_phone=format_phone_number(request.second_phone) or "",
    )
    return customer_to_schema(customer)


@app.get("/api/customers/{customer_id}", response_model=CustomerSchema)
def get_customer(customer_id: str):
    return customer_to_schema(get_service().customers.get_customer(customer_id))


@app.patch("/api/customers/{customer_id}", response_model=CustomerSchema)
def update_customer(customer_id: str, request: CustomerUpdateRequest):
    update_data = request.model_dump(exclude_unset=True)
    if "address" in update_data and request.address is not None:
        update_data["address"] = Address(**request.address.model_dump())
    customer = get_service().customers.update_customer(customer_id, **update_data)
    return customer_to_schema(customer)


@app.delete("/api/customers/{customer_id}", response_model=CustomerSchema)
def delete_customer(customer_id: str):
    return customer_to_schema(get_service().customers.delete_customer(customer_id))


@app.get("/api/customers/{customer_id}/orders", response_model=OrderListResponse)
def list_customer_orders(customer_id: str):
    orders = get_service().orders.orders_for_customer(customer_id)
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
    )


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(status: Optional[str] = Query(default=None)):
    """List orders, newest first."""
    orders = get_service().orders.list_orders(status=status)
    return OrderListResponse(
        orders=[order_to_schema(o) for o in orders],
        count=len(orders),
    )


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def submit_order(request: DraftSubmitRequest):
    """Validate and persist a new draft."""
    order = get_service().submit_draft(schema_to_draft(request.draft), request.actor)
    return order_to_schema(order)


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    return order_to_schema(get_service().orders.get_order(order_id))


@app.get("/api/orders/{order_id}/draft", response_model=DraftSchema)
def load_order_draft(order_id: str):
    """Load an order into an edit draft."""
    return draft_to_schema(get_service().load_draft(order_id))


@app.put("/api/orders/{order_id}", response_model=OrderSchema)
def save_order(order_id: str, request: DraftSubmitRequest):
    """Save an edit draft over the stored order and log the changes."""
    draft = replace(schema_to_draft(request.draft), order_id=order_id)
    return order_to_schema(get_service().save_draft(draft, request.actor))


@app.post("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(order_id: str, request: StatusUpdateRequest):
    return order_to_schema(get_service().update_status(order_id, request.status, request.actor))


@app.post("/api/orders/{order_id}/advance", response_model=OrderSchema)
def advance_order(order_id: str, request: ActorRequest):
    """Move the order to its next status."""
    return order_to_schema(get_service().advance_status(order_id, request.actor))


@app.post("/api/orders/{order_id}/cancel", response_model=OrderSchema)
def cancel_order(order_id: str, request: ActorRequest):
    return order_to_schema(get_service().cancel_order(order_id, request.actor))


@app.post("/api/orders/{order_id}/notes", response_model=OrderSchema, status_code=201)
def add_order_note(order_id: str, request: NoteCreateRequest):
    order = get_service().add_note(order_id, request.title, request.summary, request.actor)
    return order_to_schema(order)


@app.delete("/api/orders/{order_id}", response_model=OrderSchema)
def delete_order(order_id: str):
    return order_to_schema(get_service().delete_order(order_id))


# --- Draft Endpoints ---


@app.post("/api/drafts", response_model=DraftSchema)
def new_draft():
    """Start an empty draft with the default shipping fee."""
    return draft_to_schema(get_service().reconciler().new_draft())


@app.post("/api/drafts/apply", response_model=DraftSchema)
def apply_draft_operation(request: DraftOperationRequest):
    """
    Apply one named operation to a draft and return the reconciled result.

    Example body:
        {"draft": {...}, "operation": "set_quantity", "params": {"product_id": "a", "quantity": 2}}
    """
    reconciler = get_service().reconciler()
    draft = reconciler.apply(schema_to_draft(request.draft), request.operation, request.params)
    return draft_to_schema(draft)


@app.post("/api/drafts/select-customer", response_model=DraftSchema)
def select_draft_customer(request: DraftSelectCustomerRequest):
    """Attach an existing customer to a draft and ship to their address."""
    service = get_service()
    customer = service.customers.get_customer(request.customer_id)
    draft = service.reconciler().apply_select_customer(schema_to_draft(request.draft), customer)
    return draft_to_schema(draft)


# --- Shipping Rate Endpoints ---


@app.get("/api/shipping/governorates")
def list_governorates():
    rates = get_service().rates
    names = rates.governorate_names()
    return {"governorates": names, "count": len(names), "currency": rates.currency}


@app.get("/api/shipping/governorates/{governorate}/cities", response_model=list[CitySchema])
def list_cities(governorate: str):
    """Cities of a governorate with their fees ([] for an unknown governorate)."""
    rates = get_service().rates
    return [
        CitySchema(name=city, fee=money_to_str(rates.fee_for(governorate, city)))
        for city in rates.city_names(governorate)
    ]


@app.get("/api/shipping/fee", response_model=ShippingFeeQuoteResponse)
def quote_shipping_fee(governorate: str = Query(default=""), city: str = Query(default="")):
    """Look up a destination fee, falling back to the default fee."""
    rates = get_service().rates
    fee = resolve_shipping_fee((), Address(governorate=governorate, city=city), Catalog(), rates)
    return ShippingFeeQuoteResponse(
        governorate=governorate,
        city=city,
        fee=money_to_str(fee),
        listed=rates.fee_for(governorate, city) is not None,
        currency=rates.currency,
    )
