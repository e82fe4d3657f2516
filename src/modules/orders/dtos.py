"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: input for order creation (customer + nested items).
- ``CheckoutDTO``: the checkout form, turned into a ``CreateOrderDTO``.
- ``UpdateStatusDTO``: admin status transition request.
- ``OrderTrackingDTO``: the public view of an order.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator

from modules.orders.constants import (
    DNI_PATTERN,
    MAX_INSTALLMENTS,
    MIN_INSTALLMENTS,
    PHONE_PATTERN,
    OrderStatus,
    PaymentMethod,
)

if TYPE_CHECKING:
    from modules.orders.models import Order

PAYMENT_METHODS = {choice.value for choice in PaymentMethod}
STATUSES = {choice.value for choice in OrderStatus}


def _required(value: str, label: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{label} is required.")
    return value.strip()


def _check_dni(value: str) -> str:
    value = (value or "").strip()
    if not re.match(DNI_PATTERN, value):
        raise ValueError("DNI must have exactly 8 digits.")
    return value


def _check_phone(value: str) -> str:
    value = (value or "").strip()
    if not re.match(PHONE_PATTERN, value):
        raise ValueError("Phone number is not valid.")
    return value


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _check_installments(value: int) -> int:
    if not MIN_INSTALLMENTS <= value <= MAX_INSTALLMENTS:
        raise ValueError(
            f"Installments must be between {MIN_INSTALLMENTS} and {MAX_INSTALLMENTS}."
        )
    return value


def _check_payment_method(value: str) -> str:
    if value not in PAYMENT_METHODS:
        raise ValueError(f"Unknown payment method '{value}'.")
    return value


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    The storefront sends ``product_id``, ``quantity`` and, for sized
    products, ``size``.  ``unit_price`` is resolved by the Service Layer
    from the product catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int
    size: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("size")
    @classmethod
    def blank_size_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - The same product and size cannot appear twice.
    - Customer DNI, phone and e-mail formats.
    - ``installments`` between 1 and 3.
    """

    model_config = ConfigDict(frozen=True)

    customer_name: str
    customer_dni: str
    customer_phone: str
    customer_email: Optional[EmailStr] = None
    shipping_address: str
    payment_method: str = PaymentMethod.BANK_TRANSFER.value
    installments: int = MIN_INSTALLMENTS
    items: List[CreateOrderItemDTO]
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        return _required(v, "Customer name")

    @field_validator("shipping_address")
    @classmethod
    def address_required(cls, v: str) -> str:
        return _required(v, "Shipping address")

    @field_validator("customer_dni")
    @classmethod
    def dni_format(cls, v: str) -> str:
        return _check_dni(v)

    @field_validator("customer_phone")
    @classmethod
    def phone_format(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("customer_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("payment_method")
    @classmethod
    def payment_method_known(cls, v: str) -> str:
        return _check_payment_method(v)

    @field_validator("installments")
    @classmethod
    def installments_range(cls, v: int) -> int:
        return _check_installments(v)

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_lines(self):
        """Prevent the same product and size from appearing twice."""
        keys = [(item.product_id, item.size) for item in self.items]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate product/size lines are not allowed in the same order.")
        return self


class CheckoutDTO(BaseModel):
    """The customer checkout form.

    ``customer_name`` and ``shipping_address`` are composed the way the
    shop stores them: ``"first last"`` and ``"address, city, department"``.
    """

    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    dni: str
    phone: str
    email: Optional[EmailStr] = None
    address: str
    department: str
    city: str
    payment_method: str = PaymentMethod.BANK_TRANSFER.value
    installments: int = MIN_INSTALLMENTS
    notes: str = ""

    @field_validator("first_name")
    @classmethod
    def first_name_required(cls, v: str) -> str:
        return _required(v, "First name")

    @field_validator("last_name")
    @classmethod
    def last_name_required(cls, v: str) -> str:
        return _required(v, "Last name")

    @field_validator("address")
    @classmethod
    def address_required(cls, v: str) -> str:
        return _required(v, "Address")

    @field_validator("department")
    @classmethod
    def department_required(cls, v: str) -> str:
        return _required(v, "Department")

    @field_validator("city")
    @classmethod
    def city_required(cls, v: str) -> str:
        return _required(v, "City")

    @field_validator("dni")
    @classmethod
    def dni_format(cls, v: str) -> str:
        return _check_dni(v)

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("payment_method")
    @classmethod
    def payment_method_known(cls, v: str) -> str:
        return _check_payment_method(v)

    @field_validator("installments")
    @classmethod
    def installments_range(cls, v: int) -> int:
        return _check_installments(v)

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def shipping_address(self) -> str:
        return f"{self.address}, {self.city}, {self.department}"

    def to_order(
        self,
        items: List[CreateOrderItemDTO],
        idempotency_key: Optional[str] = None,
    ) -> CreateOrderDTO:
        return CreateOrderDTO(
            customer_name=self.customer_name,
            customer_dni=self.dni,
            customer_phone=self.phone,
            customer_email=self.email,
            shipping_address=self.shipping_address,
            payment_method=self.payment_method,
            installments=self.installments,
            items=items,
            notes=self.notes,
            idempotency_key=idempotency_key,
        )


class UpdateStatusDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    notes: str = ""

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        if v not in STATUSES:
            raise ValueError(f"Unknown status '{v}'.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderTrackingDTO(BaseModel):
    """What an anonymous visitor may see about an order."""

    model_config = ConfigDict(frozen=True)

    order_code: str
    status: str
    customer_name: str
    total_amount: Decimal
    created_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderTrackingDTO:
        return cls(
            order_code=order.order_code,
            status=order.status,
            customer_name=order.customer_name,
            total_amount=order.total_amount,
            created_at=order.created_at,
        )
