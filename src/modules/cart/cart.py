"""Session-backed shopping cart.

The cart lives in the Django session under ``settings.CART_SESSION_KEY`` as a
list of ``{"product_id", "quantity", "size"}`` lines.  Products are resolved
on every read, so prices and availability always come from the catalog, and
lines pointing at deleted products are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError

from modules.products.exceptions import ProductNotFound, SizeRequired, VariantNotFound
from modules.products.models import Product, ProductStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    product: Product
    quantity: int
    size: Optional[str]

    @property
    def unit_price(self) -> Decimal:
        return self.product.price_for_size(self.size)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


def _same_line(line: Dict, product_id: str, size: Optional[str]) -> bool:
    return line["product_id"] == product_id and (line.get("size") or None) == (size or None)


class Cart:
    """Cart state for one visitor session."""

    def __init__(self, session) -> None:
        self.session = session
        self._lines: List[Dict] = list(session.get(settings.CART_SESSION_KEY, []))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, product_id: str, quantity: int = 1, size: Optional[str] = None) -> None:
        """Add ``quantity`` units, merging with a line of the same product and size.

        Raises:
            ProductNotFound: unknown, deleted or inactive product.
            SizeRequired: the product has sizes and none was given.
            VariantNotFound: the size does not exist for the product.
        """
        product = self._get_product(product_id)
        size = size or None
        if product.has_variants:
            if not size:
                raise SizeRequired(f"Select a size for '{product.name}'.")
            if not product.variants.filter(size=size).exists():
                raise VariantNotFound(f"Size '{size}' not found for '{product.name}'.")
        else:
            size = None

        key = str(product.id)
        for line in self._lines:
            if _same_line(line, key, size):
                line["quantity"] += quantity
                break
        else:
            self._lines.append({"product_id": key, "quantity": quantity, "size": size})

        self._save()
        logger.info("cart.item_added", product_id=key, quantity=quantity, size=size)

    def update_quantity(self, product_id: str, quantity: int, size: Optional[str] = None) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove(product_id, size)
            return
        key = str(product_id)
        for line in self._lines:
            if _same_line(line, key, size):
                line["quantity"] = quantity
                self._save()
                return

    def remove(self, product_id: str, size: Optional[str] = None) -> None:
        key = str(product_id)
        self._lines = [line for line in self._lines if not _same_line(line, key, size)]
        self._save()

    def clear(self) -> None:
        self._lines = []
        self.session.pop(settings.CART_SESSION_KEY, None)
        self.session.modified = True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def lines(self) -> List[CartLine]:
        """Resolve lines against the catalog, dropping deleted products."""
        ids = {line["product_id"] for line in self._lines}
        products = {
            str(p.id): p
            for p in Product.objects.alive().filter(id__in=ids).prefetch_related("variants")
        }
        resolved = []
        kept = []
        for line in self._lines:
            product = products.get(line["product_id"])
            if product is None:
                continue
            kept.append(line)
            resolved.append(CartLine(product, line["quantity"], line.get("size")))
        if len(kept) != len(self._lines):
            logger.info("cart.stale_lines_dropped", dropped=len(self._lines) - len(kept))
            self._lines = kept
            self._save()
        return resolved

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines())

    @property
    def total_price(self) -> Decimal:
        return sum((line.subtotal for line in self.lines()), Decimal("0"))

    def contains(self, product_id: str, size: Optional[str] = None) -> bool:
        return self.quantity_of(product_id, size) > 0

    def quantity_of(self, product_id: str, size: Optional[str] = None) -> int:
        key = str(product_id)
        return sum(
            line["quantity"] for line in self._lines if _same_line(line, key, size)
        )

    def is_empty(self) -> bool:
        return not self.lines()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_product(self, product_id: str) -> Product:
        try:
            product = (
                Product.objects.alive()
                .filter(id=product_id, status=ProductStatus.ACTIVE)
                .first()
            )
        except (ValueError, ValidationError):
            product = None
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product

    def _save(self) -> None:
        self.session[settings.CART_SESSION_KEY] = self._lines
        self.session.modified = True
