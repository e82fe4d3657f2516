"""Django ORM implementation of the Product repository.

Satisfies ``IProductRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: methods return ``None``
instead of raising HTTP-level exceptions; the Service Layer decides
how to translate a missing entity into an API response.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import structlog

from django.core.exceptions import ValidationError
from django.db import transaction

from modules.orders.constants import TERMINAL_STATES
from modules.products.models import (
    Product,
    ProductImage,
    ProductStatus,
    ProductVariant,
)
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a live product by primary key.

        Returns ``None`` for non-existent, soft-deleted or invalid IDs.
        """
        try:
            return (
                Product.objects.alive()
                .prefetch_related("variants", "images")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None):
        """List live products with optional Django ORM look-ups.

        Examples of valid filters::

            {"status": "active"}
            {"category": "Anillos"}
        """
        queryset = Product.objects.alive().prefetch_related("variants", "images")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        """Persist (create or update) a product."""
        entity.save()
        logger.info("product.saved", product_id=str(entity.id), stock=entity.stock)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a product by ID.

        Returns ``True`` if the product was found and soft-deleted,
        ``False`` if no live product exists with the given ID.
        """
        product = self.get_by_id(id)
        if not product:
            return False
        product.delete()
        return True

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def get_for_update(self, id: str) -> Optional[Product]:
        try:
            return Product.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def lock_many(self, ids: Iterable[str]) -> Dict[str, Product]:
        unique_ids = sorted({str(i) for i in ids})
        try:
            products = (
                Product.objects.select_for_update()
                .filter(id__in=unique_ids)
                .order_by("id")
            )
            return {str(p.id): p for p in products}
        except (ValueError, ValidationError):
            return {}

    def get_variant_for_update(
        self, product: Product, size: str
    ) -> Optional[ProductVariant]:
        return (
            ProductVariant.objects.select_for_update()
            .filter(product=product, size=size)
            .first()
        )

    # ------------------------------------------------------------------
    # Variants / images
    # ------------------------------------------------------------------

    @transaction.atomic
    def replace_variants(self, product, variants) -> List[ProductVariant]:
        ProductVariant.objects.filter(product=product).delete()
        created = ProductVariant.objects.bulk_create(
            [
                ProductVariant(
                    product=product,
                    size=variant.size,
                    stock=variant.stock,
                    price=variant.price,
                )
                for variant in variants
            ]
        )
        logger.info(
            "product.variants_replaced",
            product_id=str(product.id),
            sizes=[v.size for v in created],
        )
        return created

    def open_order_sizes(self, product) -> Set[Optional[str]]:
        sizes = (
            product.order_items.exclude(order__status__in=TERMINAL_STATES)
            .order_by()
            .values_list("selected_size", flat=True)
            .distinct()
        )
        return {size or None for size in sizes}

    @transaction.atomic
    def replace_images(self, product, images) -> None:
        ProductImage.objects.filter(product=product).delete()
        ProductImage.objects.bulk_create(
            [
                ProductImage(
                    product=product,
                    public_id=image.public_id,
                    secure_url=image.secure_url,
                    format=image.format,
                    bytes=image.bytes,
                    width=image.width,
                    height=image.height,
                    is_main=index == 0,
                    sort_order=index,
                )
                for index, image in enumerate(images)
            ]
        )

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    @transaction.atomic
    def set_display_order(self, ids: Sequence[str]) -> int:
        products = {str(p.id): p for p in Product.objects.alive().filter(id__in=ids)}
        updated = []
        for position, product_id in enumerate(ids):
            product = products.get(str(product_id))
            if product is None:
                continue
            product.display_order = position
            updated.append(product)
        Product.objects.bulk_update(updated, ["display_order"])
        return len(updated)

    def featured(self):
        return self.list({"featured": True, "status": ProductStatus.ACTIVE})

    def most_expensive(self, limit: int) -> List[Product]:
        return list(
            self.list({"status": ProductStatus.ACTIVE}).order_by("-price", "name")[:limit]
        )
