"""Unit tests for OrderService.

Covers:
- Order creation with stock reservation on simple and sized products.
- Product validation (missing, inactive, size required, unknown size).
- Insufficient stock rolls back every line.
- Idempotency key returns the original order.
- Status transitions validated against the state machine, with history.
- Cancellation, line removal and deletion restore stock to the right size.
- Checkout from the session cart; payment confirmation; tracking.
"""

from __future__ import annotations

from decimal import Decimal
from importlib import import_module
from uuid import uuid4

import pytest
from django.conf import settings

from modules.cart.cart import Cart
from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CheckoutDTO, CreateOrderDTO, CreateOrderItemDTO
from modules.orders.exceptions import (
    EmptyCart,
    InactiveProduct,
    InsufficientStock,
    InvalidOrderStatus,
    OrderItemNotFound,
    OrderLocked,
    OrderNotFound,
)
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.exceptions import ProductNotFound, SizeRequired, VariantNotFound
from modules.products.models import Product, ProductVariant
from modules.products.repositories.django_repository import ProductDjangoRepository

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
    )


def _dto(*items, **overrides) -> CreateOrderDTO:
    data = {
        "customer_name": "María Quispe",
        "customer_dni": "45879632",
        "customer_phone": "987654321",
        "customer_email": "maria@example.com",
        "shipping_address": "Av. Larco 345, Miraflores, Lima",
        "items": list(items),
    }
    data.update(overrides)
    return CreateOrderDTO(**data)


def _item(product, quantity=1, size=None) -> CreateOrderItemDTO:
    return CreateOrderItemDTO(product_id=product.id, quantity=quantity, size=size)


def _stock(product) -> int:
    return Product.objects.get(id=product.id).stock


def _variant_stock(product, size) -> int:
    return ProductVariant.objects.get(product=product, size=size).stock


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_reserves_simple_stock(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet, 3)))

        assert order.status == OrderStatus.RECEIVED
        assert order.order_code.startswith("ORD-")
        assert order.total_amount == Decimal("2697.00")
        assert _stock(bracelet) == 7

    def test_selling_last_unit_marks_out_of_stock(self, service, simple_product):
        service.create_order(_dto(_item(simple_product, 5)))
        product = Product.objects.get(id=simple_product.id)
        assert product.stock == 0
        assert product.in_stock is False

    def test_reserves_variant_stock_and_price(self, service, ring):
        order = service.create_order(_dto(_item(ring, 2, "7")))

        item = order.items.get()
        assert item.selected_size == "7"
        assert item.unit_price == Decimal("3699.00")
        assert item.subtotal == Decimal("7398.00")
        assert _variant_stock(ring, "7") == 1
        assert _variant_stock(ring, "6") == 2
        assert _stock(ring) == 3

    def test_snapshots_name_and_price(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        Product.objects.filter(id=bracelet.id).update(name="Renamed", price=Decimal("1.00"))
        item = order.items.get()
        assert item.product_name == "Pulsera Cadena Delicada"
        assert item.unit_price == Decimal("899.00")

    def test_records_history_and_outbox_event(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)), changed_by="web")

        history = OrderStatusHistory.objects.get(order=order)
        assert history.old_status is None
        assert history.new_status == OrderStatus.RECEIVED
        assert history.changed_by == "web"
        event = OutboxEvent.objects.get(event_type="OrderCreated")
        assert event.payload["order_code"] == order.order_code

    def test_blank_email_stored_empty(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet), customer_email=""))
        assert order.customer_email == ""

    def test_unknown_product(self, service):
        missing = Product(id=uuid4(), name="ghost", price=Decimal("1"))
        with pytest.raises(ProductNotFound):
            service.create_order(_dto(_item(missing)))

    def test_deleted_product(self, service, bracelet):
        bracelet.delete()
        with pytest.raises(ProductNotFound):
            service.create_order(_dto(_item(bracelet)))

    def test_inactive_product(self, service, inactive_product):
        with pytest.raises(InactiveProduct):
            service.create_order(_dto(_item(inactive_product)))

    def test_sized_product_requires_size(self, service, ring):
        with pytest.raises(SizeRequired):
            service.create_order(_dto(_item(ring)))

    def test_unknown_size(self, service, ring):
        with pytest.raises(VariantNotFound):
            service.create_order(_dto(_item(ring, 1, "12")))

    def test_insufficient_variant_stock(self, service, ring):
        with pytest.raises(InsufficientStock):
            service.create_order(_dto(_item(ring, 3, "6")))

    def test_insufficient_stock_rolls_back_all_lines(self, service, bracelet, simple_product):
        with pytest.raises(InsufficientStock):
            service.create_order(_dto(_item(bracelet, 2), _item(simple_product, 6)))

        assert _stock(bracelet) == 10
        assert _stock(simple_product) == 5
        assert Order.objects.count() == 0

    def test_idempotency_key_returns_same_order(self, service, bracelet):
        first = service.create_order(_dto(_item(bracelet), idempotency_key="key-1"))
        second = service.create_order(_dto(_item(bracelet), idempotency_key="key-1"))

        assert first.id == second.id
        assert Order.objects.count() == 1
        assert _stock(bracelet) == 9


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class TestCheckout:
    @pytest.fixture()
    def cart(self):
        engine = import_module(settings.SESSION_ENGINE)
        return Cart(engine.SessionStore())

    @pytest.fixture()
    def form(self):
        return CheckoutDTO(
            first_name="Lucía",
            last_name="Torres",
            dni="41236587",
            phone="+51 955 123 456",
            email="lucia@example.com",
            address="Calle Mercaderes 210",
            department="Arequipa",
            city="Arequipa",
            payment_method="Tarjeta",
            installments=3,
        )

    def test_creates_order_from_cart_and_clears_it(self, service, cart, form, ring, bracelet):
        cart.add(str(ring.id), 1, size="6")
        cart.add(str(bracelet.id), 2)

        order = service.checkout(cart, form)

        assert order.customer_name == "Lucía Torres"
        assert order.shipping_address == "Calle Mercaderes 210, Arequipa, Arequipa"
        assert order.installments == 3
        assert order.total_amount == Decimal("3599.00") + Decimal("1798.00")
        assert cart.is_empty()
        assert _variant_stock(ring, "6") == 1

    def test_empty_cart(self, service, cart, form):
        with pytest.raises(EmptyCart):
            service.checkout(cart, form)

    def test_failed_checkout_keeps_cart(self, service, cart, form, simple_product):
        cart.add(str(simple_product.id), 6)
        with pytest.raises(InsufficientStock):
            service.checkout(cart, form)
        assert cart.quantity_of(str(simple_product.id)) == 6


# ---------------------------------------------------------------------------
# Status workflow
# ---------------------------------------------------------------------------


class TestUpdateStatus:
    def test_follow_happy_path(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        for status in (OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED):
            order = service.update_status(order.id, status, changed_by="admin@salcedojewels.pe")

        assert order.status == OrderStatus.DELIVERED
        history = list(
            OrderStatusHistory.objects.filter(order=order)
            .order_by("created_at")
            .values_list("old_status", "new_status")
        )
        assert history == [
            (None, OrderStatus.RECEIVED),
            (OrderStatus.RECEIVED, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS),
            (OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED),
        ]

    def test_skipping_a_step_is_rejected(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        with pytest.raises(InvalidOrderStatus):
            service.update_status(order.id, OrderStatus.DELIVERED)

    def test_terminal_status_is_final(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        service.cancel_order(order.id)
        with pytest.raises(InvalidOrderStatus):
            service.update_status(order.id, OrderStatus.CONFIRMED)

    def test_cancel_through_status_restores_stock(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet, 4)))
        order = service.update_status(order.id, OrderStatus.CANCELLED)
        assert order.status == OrderStatus.CANCELLED
        assert _stock(bracelet) == 10

    def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            service.update_status(uuid4(), OrderStatus.CONFIRMED)


class TestCancelOrder:
    def test_restores_each_size(self, service, ring, bracelet):
        order = service.create_order(
            _dto(_item(ring, 1, "6"), _item(ring, 2, "7"), _item(bracelet, 1))
        )
        service.cancel_order(order.id, notes="Cliente desistió")

        assert _variant_stock(ring, "6") == 2
        assert _variant_stock(ring, "7") == 3
        assert _stock(ring) == 5
        assert _stock(bracelet) == 10
        assert OutboxEvent.objects.filter(event_type="OrderCancelled").count() == 1

    def test_cancel_twice_rejected(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet, 2)))
        service.cancel_order(order.id)
        with pytest.raises(InvalidOrderStatus):
            service.cancel_order(order.id)
        assert _stock(bracelet) == 10

    def test_in_progress_cannot_be_cancelled(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        service.update_status(order.id, OrderStatus.CONFIRMED)
        service.update_status(order.id, OrderStatus.IN_PROGRESS)
        with pytest.raises(InvalidOrderStatus):
            service.cancel_order(order.id)

    def test_restocking_sold_out_product_marks_in_stock(self, service, simple_product):
        order = service.create_order(_dto(_item(simple_product, 5)))
        assert Product.objects.get(id=simple_product.id).in_stock is False

        service.cancel_order(order.id)

        product = Product.objects.get(id=simple_product.id)
        assert product.stock == 5
        assert product.in_stock is True

    def test_restocking_sold_out_sizes_marks_in_stock(self, service, ring):
        order = service.create_order(_dto(_item(ring, 2, "6"), _item(ring, 3, "7")))
        assert Product.objects.get(id=ring.id).in_stock is False

        service.cancel_order(order.id)

        product = Product.objects.get(id=ring.id)
        assert product.stock == 5
        assert product.in_stock is True


class TestRemoveItem:
    def test_restores_exact_quantity_and_recomputes_total(self, service, ring, bracelet):
        order = service.create_order(_dto(_item(ring, 2, "7"), _item(bracelet, 1)))
        ring_line = order.items.get(product=ring)

        order = service.remove_item(order.id, ring_line.id)

        assert _variant_stock(ring, "7") == 3
        assert _variant_stock(ring, "6") == 2
        assert order.total_amount == Decimal("899.00")
        assert order.items.count() == 1

    def test_last_line_leaves_empty_order(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet, 2)))
        order = service.remove_item(order.id, order.items.get().id)
        assert order.items.count() == 0
        assert order.total_amount == Decimal("0.00")
        assert _stock(bracelet) == 10

    def test_unknown_item(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        with pytest.raises(OrderItemNotFound):
            service.remove_item(order.id, uuid4())

    def test_terminal_order_is_locked(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        item_id = order.items.get().id
        service.cancel_order(order.id)
        with pytest.raises(OrderLocked):
            service.remove_item(order.id, item_id)

    def test_removing_line_of_sold_out_product_marks_in_stock(self, service, simple_product, bracelet):
        order = service.create_order(_dto(_item(simple_product, 5), _item(bracelet)))
        line = order.items.get(product=simple_product)

        service.remove_item(order.id, line.id)

        product = Product.objects.get(id=simple_product.id)
        assert product.stock == 5
        assert product.in_stock is True

    def test_removing_line_of_sold_out_sizes_marks_in_stock(self, service, ring, bracelet):
        order = service.create_order(
            _dto(_item(ring, 2, "6"), _item(ring, 3, "7"), _item(bracelet))
        )
        assert Product.objects.get(id=ring.id).in_stock is False

        service.remove_item(order.id, order.items.get(product=ring, selected_size="7").id)

        product = Product.objects.get(id=ring.id)
        assert product.stock == 3
        assert product.in_stock is True


class TestDeleteOrder:
    def test_delete_restores_stock(self, service, ring):
        order = service.create_order(_dto(_item(ring, 2, "7")))
        service.delete_order(order.id)

        assert not Order.objects.filter(id=order.id).exists()
        assert _variant_stock(ring, "7") == 3
        assert OutboxEvent.objects.get(event_type="OrderDeleted").payload["stock_restored"] is True

    def test_delete_cancelled_order_does_not_restore_twice(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet, 3)))
        service.cancel_order(order.id)
        service.delete_order(order.id)
        assert _stock(bracelet) == 10

    def test_delete_unknown(self, service):
        with pytest.raises(OrderNotFound):
            service.delete_order(uuid4())

    def test_delete_marks_sold_out_product_in_stock(self, service, simple_product):
        order = service.create_order(_dto(_item(simple_product, 5)))
        service.delete_order(order.id)
        assert Product.objects.get(id=simple_product.id).in_stock is True

    def test_delete_marks_sold_out_sizes_in_stock(self, service, ring):
        order = service.create_order(_dto(_item(ring, 2, "6"), _item(ring, 3, "7")))
        service.delete_order(order.id)

        product = Product.objects.get(id=ring.id)
        assert product.stock == 5
        assert product.in_stock is True


# ---------------------------------------------------------------------------
# Payment confirmation / tracking
# ---------------------------------------------------------------------------


class TestConfirmPayment:
    def test_received_order_is_confirmed(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        order = service.confirm_payment(order.id, reference="TX-1")
        assert order.status == OrderStatus.CONFIRMED
        latest = OrderStatusHistory.objects.filter(order=order).order_by("-created_at").first()
        assert latest.notes == "Payment verified (TX-1)"

    def test_other_status_untouched(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        service.cancel_order(order.id)
        order = service.confirm_payment(order.id, reference="TX-2")
        assert order.status == OrderStatus.CANCELLED


class TestTrackOrder:
    def test_track_normalizes_code(self, service, bracelet):
        order = service.create_order(_dto(_item(bracelet)))
        tracking = service.track_order(f"  {order.order_code.lower()} ")
        assert tracking.order_code == order.order_code
        assert tracking.status == OrderStatus.RECEIVED
        assert tracking.customer_name == "María Quispe"
        assert tracking.total_amount == Decimal("899.00")

    def test_unknown_code(self, service):
        with pytest.raises(OrderNotFound):
            service.track_order("ORD-000000")
