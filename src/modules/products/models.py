"""Catalog models: products, sized variants and uploaded images.

Business rules implemented:
- Price must be greater than zero.
- Stock can never be negative.
- A product with variants keeps ``stock == sum(variant.stock)``.
- ``in_stock`` always mirrors ``stock > 0``.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class ProductCategory(models.TextChoices):
    RINGS = "Anillos", "Anillos"
    EARRINGS = "Aretes", "Aretes"
    NECKLACES = "Collares", "Collares"
    BRACELETS = "Pulseras", "Pulseras"
    OTHER = "Otro", "Otro"


class Product(SoftDeleteModel):
    """Catalog item.

    ``stock`` is authoritative for simple products.  For products with
    variants it is derived: call ``recalculate_stock()`` after touching any
    variant.
    """

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.CharField(
        max_length=20,
        choices=ProductCategory.choices,
        default=ProductCategory.OTHER,
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    main_image = models.URLField(max_length=500, blank=True, default="")
    additional_images = models.JSONField(default=list, blank=True)
    featured = models.BooleanField(default=False)
    stock = models.PositiveIntegerField(default=0)
    in_stock = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["display_order", "-created_at"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
            models.Index(fields=["category"], name="products_category_idx"),
            models.Index(fields=["display_order"], name="products_display_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Stock helpers
    # ------------------------------------------------------------------

    @property
    def has_variants(self) -> bool:
        if self.pk is None:
            return False
        return self.variants.exists()

    def recalculate_stock(self) -> int:
        """Re-derive ``stock`` / ``in_stock`` from variants (if any).

        Does not save; the caller persists inside its own transaction.
        """
        if self.has_variants:
            total = self.variants.aggregate(total=models.Sum("stock"))["total"] or 0
            self.stock = total
        self.in_stock = self.stock > 0
        return self.stock

    def price_for_size(self, size: str | None) -> Decimal:
        """Variant price override when the size has one, product price otherwise."""
        if size:
            variant = self.variants.filter(size=size).first()
            if variant is not None and variant.price:
                return variant.price
        return self.price

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": "Stock cannot be negative."})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        self.in_stock = self.stock > 0
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "stock" in update_fields:
            kwargs["update_fields"] = list({*update_fields, "in_stock"})
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                name=self.name,
                category=self.category,
            )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


class ProductVariant(BaseModel):
    """A size (talla / medida) of a product with its own stock."""

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="variants",
    )
    size = models.CharField(max_length=50)
    stock = models.PositiveIntegerField(default=0)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    class Meta:
        db_table = "product_variants"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "size"],
                name="product_variants_unique_size",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product.name} / {self.size} ({self.stock})"


class ProductImage(BaseModel):
    """Metadata of an image stored on the hosted media service."""

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="images",
    )
    public_id = models.CharField(max_length=255)
    secure_url = models.URLField(max_length=500)
    format = models.CharField(max_length=20, blank=True, default="")
    bytes = models.PositiveIntegerField(null=True, blank=True)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)
    is_main = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "product_images"
        ordering = ["sort_order"]

    def __str__(self) -> str:
        return self.public_id
