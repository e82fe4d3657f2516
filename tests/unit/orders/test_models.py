"""Unit tests for the Order aggregate and order DTOs.

Covers:
- State machine: allowed and rejected transitions, terminal states.
- Order code format and collision retries.
- OrderItem subtotal.
- DTO validation: DNI, phone, installments, payment method, duplicate
  lines, checkout composition.
"""

from __future__ import annotations

import re
from decimal import Decimal
from unittest import mock
from uuid import uuid4

import pytest
from django.db import IntegrityError, transaction
from pydantic import ValidationError

from modules.orders.constants import VALID_TRANSITIONS, OrderStatus
from modules.orders.dtos import CheckoutDTO, CreateOrderDTO, CreateOrderItemDTO, UpdateStatusDTO
from modules.orders.models import Order, OrderItem

pytestmark = pytest.mark.unit

ALL_STATUSES = [choice.value for choice in OrderStatus]


def _order(**overrides) -> Order:
    data = {
        "customer_name": "José Huamán",
        "customer_dni": "70125489",
        "customer_phone": "912345678",
        "shipping_address": "Jr. Puno 120, Cusco, Cusco",
    }
    data.update(overrides)
    return Order.objects.create(**data)


class TestStateMachine:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.RECEIVED, OrderStatus.CONFIRMED),
            (OrderStatus.RECEIVED, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS),
            (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
            (OrderStatus.IN_PROGRESS, OrderStatus.DELIVERED),
        ],
    )
    def test_allowed(self, current, target):
        assert Order(status=current).can_transition_to(target)

    @pytest.mark.parametrize("current", ALL_STATUSES)
    def test_everything_else_rejected(self, current):
        order = Order(status=current)
        for target in ALL_STATUSES:
            if target not in VALID_TRANSITIONS[current]:
                assert not order.can_transition_to(target)

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (OrderStatus.RECEIVED, False),
            (OrderStatus.IN_PROGRESS, False),
            (OrderStatus.DELIVERED, True),
            (OrderStatus.CANCELLED, True),
        ],
    )
    def test_terminal(self, status, terminal):
        assert Order(status=status).is_terminal is terminal


class TestOrderCode:
    def test_format(self):
        order = _order()
        assert re.fullmatch(r"ORD-\d{6}", order.order_code)
        assert order.status == OrderStatus.RECEIVED

    def test_collision_retries(self):
        _order(order_code="ORD-111111")
        with mock.patch.object(
            Order, "generate_order_code", side_effect=["ORD-111111", "ORD-222222"]
        ):
            order = _order()
        assert order.order_code == "ORD-222222"

    def test_gives_up_after_five_collisions(self):
        _order(order_code="ORD-111111")
        with mock.patch.object(Order, "generate_order_code", return_value="ORD-111111"):
            with pytest.raises(RuntimeError):
                _order()


class TestOrderItem:
    def test_subtotal_computed(self, bracelet):
        order = _order()
        item = OrderItem.objects.create(
            order=order,
            product=bracelet,
            product_name=bracelet.name,
            quantity=3,
            unit_price=Decimal("899.00"),
        )
        assert item.subtotal == Decimal("2697.00")
        assert order.recalculate_total() == Decimal("2697.00")

    def test_database_rejects_zero_quantity(self, bracelet):
        order = _order()
        with transaction.atomic(), pytest.raises(IntegrityError):
            OrderItem.objects.create(
                order=order,
                product=bracelet,
                product_name=bracelet.name,
                quantity=0,
                unit_price=Decimal("899.00"),
            )


class TestOrderDTOs:
    def _data(self, **overrides):
        data = {
            "customer_name": "José Huamán",
            "customer_dni": "70125489",
            "customer_phone": "912345678",
            "shipping_address": "Jr. Puno 120, Cusco, Cusco",
            "items": [{"product_id": str(uuid4()), "quantity": 1}],
        }
        data.update(overrides)
        return data

    def test_defaults(self):
        dto = CreateOrderDTO(**self._data())
        assert dto.payment_method == "Transferencia Bancaria"
        assert dto.installments == 1
        assert dto.customer_email is None

    @pytest.mark.parametrize("dni", ["1234567", "123456789", "1234567a"])
    def test_dni_must_have_eight_digits(self, dni):
        with pytest.raises(ValidationError, match="DNI"):
            CreateOrderDTO(**self._data(customer_dni=dni))

    @pytest.mark.parametrize("phone", ["12345", "abc-def-ghi"])
    def test_invalid_phone(self, phone):
        with pytest.raises(ValidationError, match="Phone"):
            CreateOrderDTO(**self._data(customer_phone=phone))

    @pytest.mark.parametrize("installments", [0, 4])
    def test_installments_range(self, installments):
        with pytest.raises(ValidationError, match="Installments"):
            CreateOrderDTO(**self._data(installments=installments))

    def test_unknown_payment_method(self):
        with pytest.raises(ValidationError, match="payment method"):
            CreateOrderDTO(**self._data(payment_method="Efectivo"))

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            CreateOrderDTO(**self._data(customer_email="not-an-email"))

    def test_empty_items(self):
        with pytest.raises(ValidationError, match="at least one item"):
            CreateOrderDTO(**self._data(items=[]))

    def test_duplicate_lines(self):
        product_id = str(uuid4())
        items = [
            {"product_id": product_id, "quantity": 1, "size": "6"},
            {"product_id": product_id, "quantity": 2, "size": "6"},
        ]
        with pytest.raises(ValidationError, match="Duplicate"):
            CreateOrderDTO(**self._data(items=items))

    def test_same_product_different_sizes_allowed(self):
        product_id = str(uuid4())
        items = [
            {"product_id": product_id, "quantity": 1, "size": "6"},
            {"product_id": product_id, "quantity": 1, "size": "7"},
        ]
        assert len(CreateOrderDTO(**self._data(items=items)).items) == 2

    def test_item_quantity_positive(self):
        with pytest.raises(ValidationError, match="Quantity"):
            CreateOrderItemDTO(product_id=uuid4(), quantity=0)

    def test_unknown_status(self):
        with pytest.raises(ValidationError, match="Unknown status"):
            UpdateStatusDTO(status="Enviado")

    def test_checkout_composition(self):
        form = CheckoutDTO(
            first_name=" Ana ",
            last_name="Torres",
            dni="45879632",
            phone="987654321",
            email="",
            address="Av. Larco 345",
            department="Lima",
            city="Miraflores",
        )
        order = form.to_order(
            [CreateOrderItemDTO(product_id=uuid4(), quantity=1)], idempotency_key="k1"
        )
        assert order.customer_name == "Ana Torres"
        assert order.shipping_address == "Av. Larco 345, Miraflores, Lima"
        assert order.customer_email is None
        assert order.idempotency_key == "k1"

    def test_checkout_requires_department(self):
        with pytest.raises(ValidationError, match="Department"):
            CheckoutDTO(
                first_name="Ana",
                last_name="Torres",
                dni="45879632",
                phone="987654321",
                address="Av. Larco 345",
                department=" ",
                city="Miraflores",
            )
