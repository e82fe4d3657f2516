"""Product service layer (Use Cases).

Orchestrates catalog business logic for the Product aggregate, delegating
persistence to the injected ``IProductRepository``.

Business rules enforced here:
- Price must be greater than zero and stock non-negative (validated by DTO).
- A product with variants derives ``stock`` from the variant stock.
- Simple stock cannot be set directly on a product that has variants.
- A new variant set must cover every size held by open orders.
- Soft delete via repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction

from modules.products.exceptions import (
    InvalidStockAdjustment,
    ProductNotFound,
    VariantNotFound,
)
from modules.products.models import Product

if TYPE_CHECKING:
    from modules.products.dtos import (
        AdjustStockDTO,
        CreateProductDTO,
        RegisterImagesDTO,
        ReorderProductsDTO,
        UpdateProductDTO,
    )
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "price",
    "category",
    "description",
    "main_image",
    "additional_images",
    "featured",
    "status",
)


class ProductService:
    """Application service for catalog use-cases.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_product(self, dto: CreateProductDTO) -> Product:
        """Create a product, with its variants when given."""
        product = Product(
            name=dto.name,
            price=dto.price,
            category=dto.category,
            description=dto.description,
            main_image=dto.main_image,
            additional_images=list(dto.additional_images),
            featured=dto.featured,
            stock=0 if dto.variants else dto.stock,
        )
        product = self._repo.save(product)

        if dto.variants:
            self._repo.replace_variants(product, dto.variants)
            product.recalculate_stock()
            product = self._repo.save(product)

        logger.info(
            "product.created",
            product_id=str(product.id),
            variants=len(dto.variants or []),
            stock=product.stock,
        )
        return product

    @transaction.atomic
    def update_product(self, id: str, dto: UpdateProductDTO) -> Product:
        """Update the supplied fields.

        ``dto.variants`` replaces the whole variant set and re-derives stock.
        An empty list turns the product into a simple-stock product whose
        stock is ``dto.stock`` (or the previous total when omitted).

        Raises:
            ProductNotFound: if the product does not exist.
            InvalidStockAdjustment: when setting simple stock on a product
                that keeps its variants, or when the new variant set drops
                a size (or sizeless stock) that an open order still holds.
        """
        product = self._get_locked(id)
        log = logger.bind(product_id=str(id))

        for field in UPDATABLE_FIELDS:
            value = getattr(dto, field)
            if value is not None:
                setattr(product, field, value)

        if dto.variants:
            # every open order line must keep a variant to restore into
            orphaned = self._repo.open_order_sizes(product) - {v.size for v in dto.variants}
            if orphaned:
                log.warning("product.variants_rejected", orphaned_sizes=sorted(map(str, orphaned)))
                raise InvalidStockAdjustment(
                    "Open orders hold stock outside the new sizes: "
                    + ", ".join(sorted(size or "no size" for size in orphaned))
                )

        if dto.variants is not None:
            self._repo.replace_variants(product, dto.variants)
            if dto.variants:
                product.recalculate_stock()
            elif dto.stock is not None:
                product.stock = dto.stock
            log.info("product.variants_updated", sizes=[v.size for v in dto.variants])
        elif dto.stock is not None:
            if product.has_variants:
                raise InvalidStockAdjustment(
                    "Stock of a product with variants is derived from its sizes."
                )
            product.stock = dto.stock

        product = self._repo.save(product)
        log.info("product.updated", stock=product.stock)
        return self.get_product(id)

    @transaction.atomic
    def adjust_stock(self, id: str, dto: AdjustStockDTO) -> Product:
        """Set simple stock, or one variant's stock when ``dto.size`` is given.

        Raises:
            ProductNotFound: if the product does not exist.
            VariantNotFound: if the size is unknown for the product.
            InvalidStockAdjustment: simple stock on a variant product, or a
                size on a simple product.
        """
        product = self._get_locked(id)
        log = logger.bind(product_id=str(id), size=dto.size)

        if dto.size:
            if not product.has_variants:
                raise InvalidStockAdjustment("Product has no sizes.")
            variant = self._repo.get_variant_for_update(product, dto.size)
            if variant is None:
                raise VariantNotFound(f"Size '{dto.size}' not found for product {id}.")
            previous = variant.stock
            variant.stock = dto.stock
            variant.save(update_fields=["stock"])
            product.recalculate_stock()
        else:
            if product.has_variants:
                raise InvalidStockAdjustment(
                    "Stock of a product with variants is derived from its sizes."
                )
            previous = product.stock
            product.stock = dto.stock

        product.save(update_fields=["stock"])
        log.info(
            "product.stock_adjusted",
            previous=previous,
            current=dto.stock,
            total=product.stock,
        )
        return self.get_product(id)

    @transaction.atomic
    def reorder_products(self, dto: ReorderProductsDTO) -> int:
        """Persist catalog order from the position of each id.

        Raises:
            ProductNotFound: if any id is unknown.
        """
        ids = [str(product_id) for product_id in dto.product_ids]
        known = {str(p.id) for p in self._repo.list({"id__in": ids})}
        missing = [product_id for product_id in ids if product_id not in known]
        if missing:
            raise ProductNotFound(f"Products not found: {', '.join(missing)}.")
        updated = self._repo.set_display_order(ids)
        logger.info("product.reordered", count=updated)
        return updated

    @transaction.atomic
    def register_images(self, id: str, dto: RegisterImagesDTO) -> Product:
        """Store uploaded-image metadata and point the product at it.

        The main image becomes ``main_image``; the rest become
        ``additional_images`` in upload order.
        """
        product = self._get_locked(id)
        images = dto.ordered()
        self._repo.replace_images(product, images)
        product.main_image = images[0].secure_url
        product.additional_images = [image.secure_url for image in images[1:]]
        self._repo.save(product)
        logger.info("product.images_registered", product_id=str(id), count=len(images))
        return self.get_product(id)

    @transaction.atomic
    def delete_product(self, id: str) -> None:
        """Soft-delete a product.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        if not self._repo.delete(id):
            raise ProductNotFound(f"Product {id} not found.")
        logger.info("product.soft_deleted", product_id=str(id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_products(self, filters: Optional[Dict[str, Any]] = None):
        """Return live products, optionally filtered."""
        return self._repo.list(filters)

    def get_product(self, id: str) -> Product:
        """Retrieve a single product by ID.

        Raises:
            ProductNotFound: if the product does not exist.
        """
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product

    def featured_products(self):
        return self._repo.featured()

    def most_expensive_products(self, limit: int = 3) -> List[Product]:
        return self._repo.most_expensive(max(limit, 0))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_locked(self, id: str) -> Product:
        product = self._repo.get_for_update(id)
        if not product or product.is_deleted:
            raise ProductNotFound(f"Product {id} not found.")
        return product
