"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items, status history tracking,
row locking and look-ups by idempotency key and order code.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db import models

    from modules.orders.models import Order, OrderItem, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the customer fields, ``items`` (list of dicts with
        ``product_id``, ``product_name``, ``selected_size``, ``quantity``,
        ``unit_price``) and optionally ``idempotency_key`` and ``notes``.
        """

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> "models.QuerySet[Order]":
        """List orders with optional filters."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def get_item(self, order: Order, item_id: str) -> Optional[OrderItem]:
        """Retrieve a line of ``order`` by id."""

    @abstractmethod
    def delete_item(self, item: OrderItem) -> None:
        """Permanently remove an order line."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        changed_by: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def get_by_code(self, order_code: str) -> Optional[Order]:
        """Retrieve an order by its customer-facing code."""
