"""Order service layer (Use Cases).

Orchestrates the core business logic for order creation, status
management and the compensating stock movements.  All write operations
are atomic; the service defines the unit-of-work boundary.

Business rules enforced:
- Products must exist and be active.
- Sized products require a known size; stock is taken from that variant
  and the product total is re-derived from its variants.
- Atomic stock reservation with SELECT FOR UPDATE, products locked in
  ascending id order.
- Stock is restored on cancellation, line removal and order deletion.
- Status transitions validated against the state machine.
- History recorded on every status change.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Tuple
from uuid import UUID

import structlog

from django.db import transaction

from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderItemDTO, OrderTrackingDTO
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderItemRemoved,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    EmptyCart,
    InactiveProduct,
    InsufficientStock,
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderLocked,
    OrderNotFound,
)
from modules.products.exceptions import ProductNotFound, SizeRequired, VariantNotFound
from modules.products.models import ProductStatus

if TYPE_CHECKING:
    from modules.cart.cart import Cart
    from modules.orders.dtos import CheckoutDTO, CreateOrderDTO
    from modules.orders.models import Order, OrderItem
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, changed_by: str = "") -> Order:
        """Create a new order with atomic stock reservation.

        Steps:
        1. Return the existing order when the idempotency key was seen.
        2. Lock every referenced product (ascending id order).
        3. For each item: validate the product, reserve stock from the
           product or its selected variant and snapshot name and price.
        4. Persist order + items atomically.
        5. Record initial status history and emit ``OrderCreated``.

        Raises:
            ProductNotFound: a product does not exist.
            InactiveProduct: a product is inactive.
            SizeRequired: a sized product was ordered without a size.
            VariantNotFound: the selected size does not exist.
            InsufficientStock: not enough stock for a line.
        """
        log = logger.bind(item_count=len(dto.items))
        log.info("order.creation_started")

        # 1. Idempotency check
        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        # 2. Lock products, sorted by id to prevent deadlocks
        products = self._product_repo.lock_many(str(i.product_id) for i in dto.items)
        sorted_items = sorted(dto.items, key=lambda i: (str(i.product_id), i.size or ""))

        # 3. Reserve stock line by line
        repo_items = []
        for item_dto in sorted_items:
            product = products.get(str(item_dto.product_id))
            if product is None or product.is_deleted:
                raise ProductNotFound(f"Product {item_dto.product_id} not found.")
            if product.status != ProductStatus.ACTIVE:
                raise InactiveProduct(f"Product '{product.name}' is not available.")

            unit_price, size = self._reserve_stock(product, item_dto, log)
            repo_items.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "selected_size": size,
                    "quantity": item_dto.quantity,
                    "unit_price": unit_price,
                }
            )

        # 4. Persist order + items
        order = self._order_repo.create(
            {
                "customer_name": dto.customer_name,
                "customer_dni": dto.customer_dni,
                "customer_phone": dto.customer_phone,
                "customer_email": dto.customer_email or "",
                "shipping_address": dto.shipping_address,
                "payment_method": dto.payment_method,
                "installments": dto.installments,
                "items": repo_items,
                "notes": dto.notes or "",
                "idempotency_key": dto.idempotency_key,
            }
        )

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_code=order.order_code,
                total_amount=str(order.total_amount),
                customer_email=order.customer_email,
            )
        )
        self._order_repo.save(order)

        # 5. Record initial history
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.RECEIVED,
            notes="Order created",
            changed_by=changed_by,
        )

        log.info(
            "order.created",
            order_id=str(order.id),
            order_code=order.order_code,
            total_amount=str(order.total_amount),
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def checkout(
        self,
        cart: Cart,
        dto: CheckoutDTO,
        idempotency_key: Optional[str] = None,
    ) -> Order:
        """Create an order from the session cart and empty the cart.

        Raises:
            EmptyCart: the cart has no lines.
            Plus everything ``create_order`` raises.
        """
        lines = cart.lines()
        if not lines:
            raise EmptyCart("The cart is empty.")

        items = [
            CreateOrderItemDTO(
                product_id=line.product.id,
                quantity=line.quantity,
                size=line.size,
            )
            for line in lines
        ]
        order = self.create_order(dto.to_order(items, idempotency_key))
        cart.clear()
        logger.info("order.checkout_completed", order_id=str(order.id))
        return order

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        notes: str = "",
        changed_by: str = "",
    ) -> Order:
        """Transition an order to a new status.

        Acquires a row-level lock (``SELECT FOR UPDATE``) on the order
        before validating the transition.  Moving to ``Cancelado`` goes
        through ``cancel_order`` so stock is always restored.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: transition is not allowed.
        """
        if new_status == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, notes=notes, changed_by=changed_by)

        order = self._get_locked(order_id)
        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )

        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(
                f"Cannot transition from {order.status} to {new_status}."
            )

        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_code=order.order_code,
                old_status=old_status,
                new_status=new_status,
            )
        )
        self._order_repo.save(order)

        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
            changed_by=changed_by,
        )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def cancel_order(self, order_id: UUID, notes: str = "", changed_by: str = "") -> Order:
        """Cancel an order and restore the stock of every line.

        Acquires a row-level lock on the order **first** to prevent
        concurrent cancellations from restoring stock twice.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: cancellation not allowed from current status.
        """
        order = self._get_locked(order_id)
        log = logger.bind(order_id=str(order_id), current_status=order.status)

        if not order.can_transition_to(OrderStatus.CANCELLED):
            log.warning("order.cancel_not_allowed")
            raise InvalidOrderStatus(f"Cannot cancel order in status {order.status}.")

        self._restore_stock(order.items.all(), log)

        old_status = order.status
        order.status = OrderStatus.CANCELLED
        order.add_domain_event(
            OrderCancelled(aggregate_id=order.id, order_code=order.order_code)
        )
        self._order_repo.save(order)

        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.CANCELLED,
            notes=notes or "Order cancelled",
            old_status=old_status,
            changed_by=changed_by,
        )

        log.info("order.cancelled")
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def remove_item(self, order_id: UUID, item_id: UUID, changed_by: str = "") -> Order:
        """Remove one line, restore exactly its quantity and recompute the total.

        An order may be left without lines; its total is then zero.

        Raises:
            OrderNotFound: order does not exist.
            OrderLocked: the order is delivered or cancelled.
            OrderItemNotFound: the line does not belong to the order.
        """
        order = self._get_locked(order_id)
        log = logger.bind(order_id=str(order_id), item_id=str(item_id))

        if order.is_terminal:
            log.warning("order.item_removal_not_allowed", status=order.status)
            raise OrderLocked(f"Lines of an order in status {order.status} cannot change.")

        item = self._order_repo.get_item(order, str(item_id))
        if item is None:
            raise OrderItemNotFound(f"Item {item_id} not found in order {order_id}.")

        self._restore_stock([item], log)
        product_id, size, quantity = item.product_id, item.selected_size, item.quantity
        self._order_repo.delete_item(item)

        previous_total = order.total_amount
        order.recalculate_total()
        order.add_domain_event(
            OrderItemRemoved(
                aggregate_id=order.id,
                order_code=order.order_code,
                product_id=str(product_id),
                selected_size=size,
                quantity=quantity,
            )
        )
        self._order_repo.save(order)

        log.info(
            "order.item_removed",
            changed_by=changed_by,
            previous_total=str(previous_total),
            total_amount=str(order.total_amount),
        )
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def delete_order(self, order_id: UUID, changed_by: str = "") -> None:
        """Permanently delete an order, restoring its stock first.

        A cancelled order already gave its stock back, so it is deleted
        without touching inventory.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._get_locked(order_id)
        log = logger.bind(order_id=str(order_id), status=order.status)

        restore = order.status != OrderStatus.CANCELLED
        if restore:
            self._restore_stock(order.items.all(), log)

        order.add_domain_event(
            OrderDeleted(
                aggregate_id=order.id,
                order_code=order.order_code,
                stock_restored=restore,
            )
        )
        self._order_repo.save(order)
        self._order_repo.delete(str(order.id))
        log.info("order.deleted", changed_by=changed_by, stock_restored=restore)

    @transaction.atomic
    def confirm_payment(self, order_id: UUID, reference: str = "") -> Order:
        """Move a ``Recibido`` order to ``Confirmado`` once its payment cleared.

        Orders in any other status are returned untouched.
        """
        order = self._get_locked(order_id)
        if order.status != OrderStatus.RECEIVED:
            logger.info(
                "order.payment_confirmation_skipped",
                order_id=str(order_id),
                status=order.status,
            )
            return order
        notes = f"Payment verified ({reference})" if reference else "Payment verified"
        return self.update_status(order.id, OrderStatus.CONFIRMED, notes=notes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    def track_order(self, order_code: str) -> OrderTrackingDTO:
        """Public look-up by order code, exposing only the tracking fields.

        Raises:
            OrderNotFound: no order carries this code.
        """
        code = (order_code or "").strip().upper()
        order = self._order_repo.get_by_code(code)
        if not order:
            logger.info("order.tracking_miss", order_code=code)
            raise OrderNotFound(f"Order {code} not found.")
        return OrderTrackingDTO.from_entity(order)

    # ------------------------------------------------------------------
    # Stock movements
    # ------------------------------------------------------------------

    def _reserve_stock(
        self, product: Product, item: CreateOrderItemDTO, log
    ) -> Tuple[Decimal, Optional[str]]:
        """Take ``item.quantity`` from the product or its selected variant.

        Returns the unit price to snapshot and the size actually reserved.
        """
        if product.has_variants:
            if not item.size:
                raise SizeRequired(f"Select a size for '{product.name}'.")
            variant = self._product_repo.get_variant_for_update(product, item.size)
            if variant is None:
                raise VariantNotFound(
                    f"Size '{item.size}' not found for '{product.name}'."
                )
            if variant.stock < item.quantity:
                raise InsufficientStock(
                    f"{product.name} ({item.size}): requested {item.quantity}, "
                    f"available {variant.stock}."
                )
            variant.stock -= item.quantity
            variant.save(update_fields=["stock"])
            product.recalculate_stock()
            unit_price = variant.price or product.price
            size: Optional[str] = item.size
        else:
            if product.stock < item.quantity:
                raise InsufficientStock(
                    f"{product.name}: requested {item.quantity}, "
                    f"available {product.stock}."
                )
            product.stock -= item.quantity
            unit_price = product.price
            size = None

        product.save(update_fields=["stock"])
        log.info(
            "order.stock_reserved",
            product_id=str(product.id),
            size=size,
            quantity=item.quantity,
            remaining=product.stock,
        )
        return unit_price, size

    def _restore_stock(self, items: Iterable[OrderItem], log) -> None:
        """Give each line's quantity back to its product or variant."""
        items = sorted(items, key=lambda i: (str(i.product_id), i.selected_size or ""))
        products = self._product_repo.lock_many(str(i.product_id) for i in items)

        for item in items:
            product = products.get(str(item.product_id))
            if product is None:
                log.warning("order.stock_restore_skipped", product_id=str(item.product_id))
                continue

            if product.has_variants:
                variant = (
                    self._product_repo.get_variant_for_update(product, item.selected_size)
                    if item.selected_size
                    else None
                )
                if variant is None:
                    log.warning(
                        "order.stock_restore_skipped",
                        product_id=str(product.id),
                        size=item.selected_size,
                    )
                    continue
                variant.stock += item.quantity
                variant.save(update_fields=["stock"])
                product.recalculate_stock()
            else:
                product.stock += item.quantity

            product.save(update_fields=["stock"])
            log.info(
                "order.stock_restored",
                product_id=str(product.id),
                size=item.selected_size,
                quantity=item.quantity,
                restored_stock=product.stock,
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_locked(self, order_id) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order
