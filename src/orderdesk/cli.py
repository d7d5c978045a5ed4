"""Command-line interface for orderdesk."""

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .errors import OrderdeskError
from .log import configure_logging
from .models import Product
from .money import format_currency, money_to_str, parse_price
from .rates import RateTable
from .service import OrderService
from .utils import format_customer, format_order, format_product


def get_service(args: argparse.Namespace) -> OrderService:
    """Build an OrderService from the global --data-dir/--rates-file options."""
    data_dir = Path(args.data_dir) if args.data_dir else None
    rates = RateTable.load(args.rates_file) if args.rates_file else None
    return OrderService(data_dir, rates=rates)


# --- products ---


def cmd_products_list(args: argparse.Namespace) -> int:
    """List catalog products."""
    try:
        products = get_service(args).products.list_products()

        if not products:
            print("No products found.")
            return 0

        if args.json:
            print(json.dumps([p.to_dict() for p in products], indent=2, ensure_ascii=False))
        else:
            print(f"Products ({len(products)}):")
            for product in products:
                print(format_product(product))
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_products_add(args: argparse.Namespace) -> int:
    """Add a product to the catalog."""
    try:
        product = Product(
            id=args.id or "",
            name=args.name,
            price=parse_price(args.price),
            sale_price=parse_price(args.sale_price) if args.sale_price else None,
            on_sale=args.on_sale,
            free_delivery=args.free_delivery,
        )
        product = get_service(args).products.add_product(product)
        print(f"Added product: {format_product(product)}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_products_remove(args: argparse.Namespace) -> int:
    """Remove a product from the catalog."""
    try:
        product = get_service(args).products.delete_product(args.product_id)
        print(f"Removed product: {product.id} ({product.name})")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- customers ---


def cmd_customers_list(args: argparse.Namespace) -> int:
    """List or search customers."""
    try:
        store = get_service(args).customers
        if args.search:
            customers = store.search_customers(args.search, include_inactive=args.all)
        else:
            customers = store.list_customers(include_inactive=args.all)

        if not customers:
            print("No customers found.")
            return 0

        if args.json:
            print(json.dumps([c.to_dict() for c in customers], indent=2, ensure_ascii=False))
        else:
            print(f"Customers ({len(customers)}):")
            for customer in customers:
                print(format_customer(customer))
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- orders ---


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders, newest first."""
    try:
        orders = get_service(args).orders.list_orders(status=args.status)

        if not orders:
            print("No orders found.")
            return 0

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2, ensure_ascii=False))
        else:
            print(f"Orders ({len(orders)}):")
            for order in orders:
                print(format_order(order, verbose=args.verbose))
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order with its items and log."""
    try:
        order = get_service(args).orders.get_order(args.order_id)
        if args.json:
            print(json.dumps(order.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(format_order(order, verbose=True))
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_advance(args: argparse.Namespace) -> int:
    """Move an order to its next status."""
    try:
        order = get_service(args).advance_status(args.order_id, args.actor)
        print(f"Order {order.id[:8]} is now {order.status}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_cancel(args: argparse.Namespace) -> int:
    """Cancel an order."""
    try:
        order = get_service(args).cancel_order(args.order_id, args.actor)
        print(f"Order {order.id[:8]} is now {order.status}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_note(args: argparse.Namespace) -> int:
    """Append an internal note to an order."""
    try:
        order = get_service(args).add_note(args.order_id, args.title, args.summary, args.actor)
        print(f"Added note to order {order.id[:8]} ({len(order.internal_notes)} notes)")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- rates / quote ---


def cmd_rates(args: argparse.Namespace) -> int:
    """List governorates, or the cities and fees of one governorate."""
    try:
        rates = RateTable.load(args.rates_file)

        if args.governorate:
            cities = rates.city_names(args.governorate)
            if not cities:
                print(f"Unknown governorate: {args.governorate}", file=sys.stderr)
                return 1
            if args.json:
                data = {c: money_to_str(rates.fee_for(args.governorate, c)) for c in cities}
                print(json.dumps(data, indent=2, ensure_ascii=False))
            else:
                print(f"{args.governorate} ({len(cities)} cities):")
                for city in cities:
                    fee = format_currency(rates.fee_for(args.governorate, city), rates.currency)
                    print(f"  {city}  {fee}")
            return 0

        names = rates.governorate_names()
        if args.json:
            print(json.dumps(names, indent=2, ensure_ascii=False))
        else:
            print(f"Governorates ({len(names)}):")
            for name in names:
                print(f"  {name} ({len(rates.city_names(name))} cities)")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _parse_item_arg(value: str) -> tuple[str, str]:
    """Split 'PRODUCT_ID[:QTY]' into (product_id, quantity)."""
    product_id, _, quantity = value.partition(":")
    return product_id, quantity or "1"


def cmd_quote(args: argparse.Namespace) -> int:
    """Price a cart against the current catalog without saving anything."""
    try:
        service = get_service(args)
        catalog = service.catalog()
        reconciler = service.reconciler(catalog)

        draft = reconciler.new_draft()
        for item_arg in args.item or []:
            product_id, quantity = _parse_item_arg(item_arg)
            product = catalog.require(product_id)
            draft = reconciler.apply_add_item(draft, product)
            draft = reconciler.apply_set_quantity(draft, product_id, quantity)

        draft = reconciler.apply_set_destination(draft, args.governorate or "", args.city or "")
        if args.shipping_fee is not None:
            draft = reconciler.apply_set_shipping_fee_override(draft, args.shipping_fee)

        if args.json:
            print(json.dumps(draft.to_dict(), indent=2, ensure_ascii=False))
            return 0

        for item in draft.items:
            print(
                f"{item.quantity} x {item.product.name} @ {format_currency(item.price_at_purchase)}"
                f" = {format_currency(item.line_total)}"
            )
        print(f"Subtotal: {format_currency(draft.subtotal)}")
        print(f"Shipping: {format_currency(draft.shipping_fees)} ({draft.shipping_fee.mode})")
        print(f"Total:    {format_currency(draft.total_amount)}")
        return 0

    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        print("Starting orderdesk API server...")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "orderdesk.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # Single worker to avoid concurrent write issues
            log_level=args.log_level.lower() if args.log_level else None,
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="orderdesk",
        description="Back-office order pricing, shipping fees and order management.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--data-dir", help="Data directory (default: ORDERDESK_DATA_DIR)")
    parser.add_argument("--rates-file", help="Shipping rate table JSON (default: bundled)")
    parser.add_argument("--log-level", help="Log level (default: ORDERDESK_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # products (subcommand group)
    products_parser = subparsers.add_parser("products", help="Manage the product catalog")
    products_subparsers = products_parser.add_subparsers(dest="products_command")

    products_list_parser = products_subparsers.add_parser("list", help="List products")
    products_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    products_add_parser = products_subparsers.add_parser("add", help="Add a product")
    products_add_parser.add_argument("name", help="Product name")
    products_add_parser.add_argument("price", help="List price, e.g. 150 or '150 EGP'")
    products_add_parser.add_argument("--id", help="Product ID (generated if omitted)")
    products_add_parser.add_argument("--sale-price", help="Sale price")
    products_add_parser.add_argument("--on-sale", action="store_true", help="Charge the sale price")
    products_add_parser.add_argument(
        "--free-delivery", action="store_true", help="Orders containing this product ship free"
    )

    products_remove_parser = products_subparsers.add_parser("remove", help="Remove a product")
    products_remove_parser.add_argument("product_id", help="Product ID")

    # customers (subcommand group)
    customers_parser = subparsers.add_parser("customers", help="Browse customers")
    customers_subparsers = customers_parser.add_subparsers(dest="customers_command")

    customers_list_parser = customers_subparsers.add_parser("list", help="List customers")
    customers_list_parser.add_argument("--search", "-s", help="Filter by name or phone")
    customers_list_parser.add_argument(
        "--all", "-a", action="store_true", help="Include archived and deleted customers"
    )
    customers_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status",
        choices=["pending", "processing", "shipped", "delivered", "cancelled"],
        help="Only show orders with this status",
    )
    orders_list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show items, totals and log"
    )
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    for name, help_text in (("advance", "Move an order to its next status"), ("cancel", "Cancel an order")):
        status_parser = orders_subparsers.add_parser(name, help=help_text)
        status_parser.add_argument("order_id", help="Order ID (or prefix)")
        status_parser.add_argument("--actor", default="cli", help="Staff member making the change")

    orders_note_parser = orders_subparsers.add_parser("note", help="Add an internal note")
    orders_note_parser.add_argument("order_id", help="Order ID (or prefix)")
    orders_note_parser.add_argument("title", help="Note title")
    orders_note_parser.add_argument("--summary", default="", help="Note body")
    orders_note_parser.add_argument("--actor", default="cli", help="Staff member adding the note")

    # rates
    rates_parser = subparsers.add_parser("rates", help="Show shipping rates")
    rates_parser.add_argument("governorate", nargs="?", help="Show cities of this governorate")
    rates_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # quote
    quote_parser = subparsers.add_parser("quote", help="Price a cart without saving")
    quote_parser.add_argument(
        "--item", "-i", action="append", help="PRODUCT_ID[:QTY], repeatable"
    )
    quote_parser.add_argument("--governorate", "-g", help="Destination governorate")
    quote_parser.add_argument("--city", "-c", help="Destination city")
    quote_parser.add_argument("--shipping-fee", help="Manual shipping fee")
    quote_parser.add_argument("--json", action="store_true", help="Output the draft as JSON")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if not args.command:
        parser.print_help()
        return 0

    groups = {
        "products": ("products_command", {
            "list": cmd_products_list,
            "add": cmd_products_add,
            "remove": cmd_products_remove,
        }),
        "customers": ("customers_command", {
            "list": cmd_customers_list,
        }),
        "orders": ("orders_command", {
            "list": cmd_orders_list,
            "show": cmd_orders_show,
            "advance": cmd_orders_advance,
            "cancel": cmd_orders_cancel,
            "note": cmd_orders_note,
        }),
    }

    if args.command in groups:
        dest, subcommands = groups[args.command]
        sub_func = subcommands.get(getattr(args, dest, None))
        if sub_func is None:
            parser.parse_args([args.command, "--help"])
            return 0
        return sub_func(args)

    commands = {
        "rates": cmd_rates,
        "quote": cmd_quote,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
