"""Pytest fixtures for orderdesk tests."""

import json
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

from orderdesk.catalog import Catalog
from orderdesk.models import Address, Product
from orderdesk.rates import RateTable
from orderdesk.reconciler import Reconciler

CAIRO = "القاهرة"
ZAMALEK = "الزمالك"
NASR_CITY = "مدينة نصر"
GIZA = "الجيزة"
DOKKI = "الدقي"

SMALL_RATES = {
    "currency": "EGP",
    "governorates": {
        CAIRO: {ZAMALEK: 50, NASR_CITY: 60},
        GIZA: {DOKKI: "45"},
    },
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rates():
    """A small rate table with a couple of governorates."""
    return RateTable.from_dict(SMALL_RATES)


@pytest.fixture
def rates_file(temp_dir):
    """The small rate table written to disk."""
    path = temp_dir / "rates.json"
    path.write_text(json.dumps(SMALL_RATES, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def product_a():
    """Regular product, not on sale."""
    return Product(id="a", name="Product A", price=Decimal("100"))


@pytest.fixture
def product_b():
    """On sale: 80 list, 60 sale."""
    return Product(
        id="b",
        name="Product B",
        price=Decimal("80"),
        sale_price=Decimal("60"),
        on_sale=True,
    )


@pytest.fixture
def product_free():
    """Ships free."""
    return Product(id="f", name="Free Shipping Kit", price=Decimal("200"), free_delivery=True)


@pytest.fixture
def catalog(product_a, product_b, product_free):
    return Catalog([product_a, product_b, product_free])


@pytest.fixture
def reconciler(catalog, rates):
    return Reconciler(catalog, rates)


@pytest.fixture
def cairo_address():
    return Address(governorate=CAIRO, city=ZAMALEK, full_address="12 Street")
