"""Unit tests for the transactional outbox.

Covers:
- store_domain_events(): one row per collected event, entity cleared.
- DomainEvent payload round trip through the outbox row.
- publish_outbox_events(): delivery to the bus, failure bookkeeping,
  retry limit.
"""

from __future__ import annotations

from unittest import mock

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.core.outbox import store_domain_events
from modules.core.tasks import publish_outbox_events
from modules.orders.events import OrderCancelled, OrderCreated
from modules.orders.models import Order
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

pytestmark = pytest.mark.unit


def _order() -> Order:
    return Order(
        customer_name="Ana Torres",
        customer_dni="45879632",
        customer_phone="987654321",
        shipping_address="Av. Larco 345, Lima, Lima",
    )


class TestStoreDomainEvents:
    def test_persists_each_event_and_clears_entity(self):
        order = _order()
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_code="ORD-100001",
                total_amount="10.00",
                customer_email="",
            )
        )
        order.add_domain_event(OrderCancelled(aggregate_id=order.id, order_code="ORD-100001"))

        stored = store_domain_events(order, topic="orders")

        assert stored == 2
        assert order.domain_events == []
        rows = list(OutboxEvent.objects.order_by("created_at"))
        assert [row.event_type for row in rows] == ["OrderCreated", "OrderCancelled"]
        assert all(row.topic == "orders" for row in rows)
        assert all(row.status == EventStatus.PENDING for row in rows)

    def test_entity_without_events_stores_nothing(self):
        assert store_domain_events(object(), topic="orders") == 0
        assert OutboxEvent.objects.count() == 0

    def test_payload_rebuilds_the_concrete_event(self):
        order = _order()
        event = OrderCreated(
            aggregate_id=order.id,
            order_code="ORD-100002",
            total_amount="1449.90",
            customer_email="ana@example.com",
        )
        order.add_domain_event(event)
        store_domain_events(order, topic="orders")

        rebuilt = DomainEvent.from_payload(OutboxEvent.objects.get().payload)

        assert isinstance(rebuilt, OrderCreated)
        assert rebuilt == event


class TestPublishOutboxEvents:
    @pytest.fixture()
    def pending_event(self):
        order = _order()
        order.add_domain_event(OrderCancelled(aggregate_id=order.id, order_code="ORD-100003"))
        store_domain_events(order, topic="orders")
        return OutboxEvent.objects.get()

    def test_publishes_pending_events(self, pending_event):
        handler = mock.Mock()
        event_bus.subscribe(OrderCancelled, handler)
        try:
            result = publish_outbox_events()
        finally:
            event_bus.unsubscribe(OrderCancelled, handler)

        assert result == {"published": 1, "failed": 0}
        handler.handle.assert_called_once()
        assert handler.handle.call_args.args[0].order_code == "ORD-100003"
        pending_event.refresh_from_db()
        assert pending_event.status == EventStatus.PUBLISHED
        assert pending_event.processed_at is not None

    def test_failing_handler_marks_event_failed(self, pending_event):
        handler = mock.Mock()
        handler.handle.side_effect = RuntimeError("mail server down")
        event_bus.subscribe(OrderCancelled, handler)
        try:
            result = publish_outbox_events()
        finally:
            event_bus.unsubscribe(OrderCancelled, handler)

        assert result == {"published": 0, "failed": 1}
        pending_event.refresh_from_db()
        assert pending_event.status == EventStatus.FAILED
        assert pending_event.retry_count == 1
        assert pending_event.error_message == "mail server down"

    def test_exhausted_events_are_not_retried(self, pending_event, settings):
        settings.OUTBOX_MAX_RETRIES = 1
        pending_event.mark_as_failed("boom")

        result = publish_outbox_events()

        assert result == {"published": 0, "failed": 0}
