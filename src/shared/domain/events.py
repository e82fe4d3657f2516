"""Domain events primitives for the storefront modules."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Dict, Type
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    Concrete events declare extra fields with ``kw_only=True`` and are
    registered by class name so the outbox publisher can rebuild them from a
    stored payload.
    """

    registry: ClassVar[Dict[str, Type["DomainEvent"]]] = {}

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        DomainEvent.registry[cls.__name__] = cls

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe representation stored in the outbox."""
        return _normalize_for_json(asdict(self))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DomainEvent":
        """Rebuild the concrete event named in ``payload['event_name']``."""
        event_class = cls.registry.get(payload.get("event_name", ""), cls)
        init_names = {f.name for f in fields(event_class) if f.init}
        kwargs = {key: value for key, value in payload.items() if key in init_names}
        kwargs["aggregate_id"] = UUID(str(kwargs["aggregate_id"]))
        if "event_id" in kwargs:
            kwargs["event_id"] = UUID(str(kwargs["event_id"]))
        if "occurred_on" in kwargs:
            kwargs["occurred_on"] = datetime.fromisoformat(kwargs["occurred_on"])
        return event_class(**kwargs)


class DomainEventMixin:
    """Mixin for aggregate roots that collect domain events in memory."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def clear_domain_events(self) -> None:
        if hasattr(self, "_domain_events"):
            self._domain_events.clear()

    @property
    def domain_events(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return list(self._domain_events)


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
