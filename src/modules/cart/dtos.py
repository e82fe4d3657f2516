"""Cart request DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class AddCartItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = 1
    size: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class UpdateCartItemDTO(BaseModel):
    """A quantity of zero or less removes the line."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    size: Optional[str] = None


class RemoveCartItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    size: Optional[str] = None
