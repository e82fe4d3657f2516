"""Product repository interface.

Extends ``IRepository[Product]`` with the look-ups needed for variant
stock, catalog ordering and row locking during order stock reservation.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Set

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.dtos import ProductImageDTO, VariantDTO
    from modules.products.models import Product, ProductVariant


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Product]":
        """List non-deleted products with optional filters."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional["Product"]:
        """Retrieve a product with a row-level lock (SELECT FOR UPDATE).

        Used by the order service for atomic stock reservation/release.
        Returns ``None`` if the product does not exist.
        """

    @abstractmethod
    def lock_many(self, ids: Iterable[str]) -> Dict[str, "Product"]:
        """Lock several products in ascending id order, keyed by ``str(id)``."""

    @abstractmethod
    def get_variant_for_update(
        self, product: "Product", size: str
    ) -> Optional["ProductVariant"]:
        """Lock the variant of ``product`` with the given size."""

    @abstractmethod
    def replace_variants(
        self, product: "Product", variants: Sequence["VariantDTO"]
    ) -> List["ProductVariant"]:
        """Drop the current variant set of ``product`` and create ``variants``."""

    @abstractmethod
    def open_order_sizes(self, product: "Product") -> Set[Optional[str]]:
        """Sizes held by lines of non-terminal orders; ``None`` for sizeless lines."""

    @abstractmethod
    def replace_images(
        self, product: "Product", images: Sequence["ProductImageDTO"]
    ) -> None:
        """Replace the image metadata of ``product``; first image is the main one."""

    @abstractmethod
    def set_display_order(self, ids: Sequence[str]) -> int:
        """Persist ``display_order`` from the position of each id."""

    @abstractmethod
    def featured(self) -> "models.QuerySet[Product]":
        """Active products flagged as featured."""

    @abstractmethod
    def most_expensive(self, limit: int) -> List["Product"]:
        """Top ``limit`` active products by price."""
