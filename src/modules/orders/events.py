"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created and its stock reserved."""

    order_code: str = ""
    total_amount: str = "0.00"
    customer_email: str = ""


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves along the status workflow."""

    order_code: str = ""
    old_status: Optional[str] = None
    new_status: str = ""


@dataclass(frozen=True, kw_only=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled and its stock restored."""

    order_code: str = ""


@dataclass(frozen=True, kw_only=True)
class OrderItemRemoved(DomainEvent):
    """Raised when a line is removed from an order and its stock restored."""

    order_code: str = ""
    product_id: str = ""
    selected_size: Optional[str] = None
    quantity: int = 0


@dataclass(frozen=True, kw_only=True)
class OrderDeleted(DomainEvent):
    """Raised when an order is permanently removed."""

    order_code: str = ""
    stock_restored: bool = False
