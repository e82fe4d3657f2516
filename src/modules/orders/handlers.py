"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderItemRemoved,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.event.created",
            order_id=str(event.aggregate_id),
            order_code=event.order_code,
            total_amount=event.total_amount,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            order_code=event.order_code,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            order_code=event.order_code,
            old_status=event.old_status,
            new_status=event.new_status,
        )


class OrderItemRemovedHandler(IEventHandler[OrderItemRemoved]):
    def handle(self, event: OrderItemRemoved) -> None:
        logger.info(
            "order.event.item_removed",
            order_id=str(event.aggregate_id),
            product_id=event.product_id,
            quantity=event.quantity,
        )


class OrderDeletedHandler(IEventHandler[OrderDeleted]):
    def handle(self, event: OrderDeleted) -> None:
        logger.info(
            "order.event.deleted",
            order_id=str(event.aggregate_id),
            order_code=event.order_code,
            stock_restored=event.stock_restored,
        )


order_created_handler = OrderCreatedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_item_removed_handler = OrderItemRemovedHandler()
order_deleted_handler = OrderDeletedHandler()
