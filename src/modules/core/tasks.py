"""Background tasks for the core module."""

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = 100) -> dict:
    """Deliver pending outbox events to the in-process event bus."""
    published = 0
    failed = 0

    with transaction.atomic():
        events = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .deliverable(settings.OUTBOX_MAX_RETRIES)[:batch_size]
        )
        for outbox_event in events:
            try:
                event = DomainEvent.from_payload(outbox_event.payload)
                event_bus.publish(event)
            except Exception as exc:  # noqa: BLE001 - recorded on the row for retry
                outbox_event.mark_as_failed(str(exc))
                failed += 1
                logger.warning(
                    "outbox.publish_failed",
                    outbox_id=str(outbox_event.id),
                    event_type=outbox_event.event_type,
                    error=str(exc),
                )
                continue
            outbox_event.mark_as_published()
            published += 1

    logger.info("outbox.batch_published", published=published, failed=failed)
    return {"published": published, "failed": failed}
