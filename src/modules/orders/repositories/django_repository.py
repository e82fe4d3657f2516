"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems) is persisted atomically, and
collected domain events are written to the outbox in the same
transaction.

Concurrency control on order mutations uses ``select_for_update()``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.outbox import store_domain_events
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"
CUSTOMER_FIELDS = (
    "customer_name",
    "customer_dni",
    "customer_phone",
    "customer_email",
    "shipping_address",
    "payment_method",
    "installments",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically and compute its total."""
        order = Order(
            idempotency_key=data.get("idempotency_key"),
            notes=data.get("notes") or "",
            **{field: data[field] for field in CUSTOMER_FIELDS if field in data},
        )
        order.save()

        total = Decimal("0.00")
        items = data.get("items", [])
        for item_data in items:
            item = OrderItem(
                order=order,
                product_id=item_data["product_id"],
                product_name=item_data["product_name"],
                selected_size=item_data.get("selected_size"),
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            )
            item.save()
            total += item.subtotal

        order.total_amount = total
        order.save(update_fields=["total_amount", "updated_at"])

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_code=order.order_code,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded items and history.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.prefetch_related("items", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None):
        """List orders with optional filters and eager-loaded relations.

        Supported filter keys are any Django look-ups on ``Order``, e.g.
        ``status`` or ``created_at__range``.
        """
        queryset = Order.objects.prefetch_related("items", "status_history")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Eager-loads items so the caller can iterate over them while the
        row is locked.  Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_item(self, order: Order, item_id: str) -> Optional[OrderItem]:
        try:
            return OrderItem.objects.filter(order=order, id=item_id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return (
            Order.objects.prefetch_related("items", "status_history")
            .filter(idempotency_key=key)
            .first()
        )

    def get_by_code(self, order_code: str) -> Optional[Order]:
        return Order.objects.filter(order_code=order_code).first()

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and move its domain events to the outbox."""
        entity.save()
        event_count = store_domain_events(entity, OUTBOX_TOPIC)
        logger.info("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Hard-delete an order together with its items and history."""
        order = Order.objects.filter(id=id).first()
        if not order:
            return False
        order.delete()
        logger.info("order.deleted", order_id=str(id))
        return True

    @transaction.atomic
    def delete_item(self, item: OrderItem) -> None:
        item.delete()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        changed_by: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
            changed_by=changed_by or "",
        )
        history.save()

        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history
