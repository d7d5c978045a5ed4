"""Point-in-time catalog snapshot used during an editing session."""

from typing import Iterable, Iterator

from .errors import ProductNotFoundError
from .models import Product


class Catalog:
    """Read-only id -> Product mapping."""

    def __init__(self, products: Iterable[Product] = ()):
        self._products: dict[str, Product] = {p.id: p for p in products}

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products.values())

    def __len__(self) -> int:
        return len(self._products)

    def get(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def require(self, product_id: str) -> Product:
        """
        Get a product by ID.

        Raises:
            ProductNotFoundError: If the product isn't in the snapshot.
        """
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def replace(self, product: Product) -> "Catalog":
        """Return a new snapshot with product added or swapped in."""
        products = dict(self._products)
        products[product.id] = product
        return Catalog(products.values())
