"""Catalog DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``VariantDTO``: one size with its stock and optional price override.
- ``CreateProductDTO`` / ``UpdateProductDTO``: catalog writes.
- ``AdjustStockDTO``: set simple stock or a single variant's stock.
- ``ReorderProductsDTO``: manual display order for the catalog.
- ``ProductImageDTO`` / ``RegisterImagesDTO``: uploaded image metadata.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.products.models import ProductCategory, ProductStatus

CATEGORIES = {choice.value for choice in ProductCategory}
STATUSES = {choice.value for choice in ProductStatus}


def _unique_sizes(variants: Optional[List["VariantDTO"]]) -> None:
    if not variants:
        return
    sizes = [variant.size for variant in variants]
    if len(sizes) != len(set(sizes)):
        raise ValueError("Variant sizes must be unique.")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class VariantDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    size: str
    stock: int = 0
    price: Optional[Decimal] = None

    @field_validator("size")
    @classmethod
    def size_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Variant size must not be empty.")
        return v.strip()

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative.")
        return v

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateProductDTO(BaseModel):
    """Immutable DTO for product creation requests.

    When ``variants`` is given, ``stock`` is ignored and derived from the
    variant stock.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    price: Decimal
    category: str = ProductCategory.OTHER.value
    description: str = ""
    main_image: str = ""
    additional_images: List[str] = []
    featured: bool = False
    stock: int = 0
    variants: Optional[List[VariantDTO]] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name must not be empty.")
        return v.strip()

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative.")
        return v

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v: str) -> str:
        if v not in CATEGORIES:
            raise ValueError(f"Unknown category '{v}'.")
        return v

    @model_validator(mode="after")
    def variant_sizes_unique(self):
        _unique_sizes(self.variants)
        return self


class UpdateProductDTO(BaseModel):
    """Immutable DTO for product update requests.

    All fields are optional; only supplied fields are updated.
    ``variants`` replaces the whole variant set: an empty list turns the
    product back into a simple-stock product.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None
    description: Optional[str] = None
    main_image: Optional[str] = None
    additional_images: Optional[List[str]] = None
    featured: Optional[bool] = None
    stock: Optional[int] = None
    status: Optional[str] = None
    variants: Optional[List[VariantDTO]] = None

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Stock cannot be negative.")
        return v

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in CATEGORIES:
            raise ValueError(f"Unknown category '{v}'.")
        return v

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in STATUSES:
            raise ValueError(f"Unknown status '{v}'.")
        return v

    @model_validator(mode="after")
    def variant_sizes_unique(self):
        _unique_sizes(self.variants)
        return self


class AdjustStockDTO(BaseModel):
    """Set stock for a simple product, or for one variant when ``size`` is given."""

    model_config = ConfigDict(frozen=True)

    stock: int
    size: Optional[str] = None

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock cannot be negative.")
        return v


class ReorderProductsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_ids: List[UUID]

    @field_validator("product_ids")
    @classmethod
    def ids_must_be_unique(cls, v: List[UUID]) -> List[UUID]:
        if not v:
            raise ValueError("At least one product id is required.")
        if len(v) != len(set(v)):
            raise ValueError("Duplicate product ids are not allowed.")
        return v


class ProductImageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_id: str
    secure_url: str
    format: str = ""
    bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class RegisterImagesDTO(BaseModel):
    """Images already uploaded to the media service, main image first after
    reordering by ``main_index``."""

    model_config = ConfigDict(frozen=True)

    images: List[ProductImageDTO]
    main_index: int = 0

    @model_validator(mode="after")
    def main_index_in_range(self):
        if not self.images:
            raise ValueError("At least one image is required.")
        if not 0 <= self.main_index < len(self.images):
            raise ValueError("main_index is out of range.")
        return self

    def ordered(self) -> List[ProductImageDTO]:
        main = self.images[self.main_index]
        rest = [img for i, img in enumerate(self.images) if i != self.main_index]
        return [main, *rest]
