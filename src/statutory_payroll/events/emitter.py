"""In-process publisher for lifecycle events.

Lifecycle calls ``emit`` only after the state change has committed, so a
subscriber that raises is logged and skipped; the record stays paid (or
superseded) and the remaining subscribers still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

from statutory_payroll.events.types import DomainEvent, RecordKindName

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], None]


@dataclass(frozen=True)
class Subscription:
    """A handler plus the events it wants (None on either filter = any)."""

    handler: EventHandler
    event_names: frozenset[str] | None = None
    kinds: frozenset[RecordKindName] | None = None

    def wants(self, event: DomainEvent) -> bool:
        if self.event_names is not None and event.event_type not in self.event_names:
            return False
        if self.kinds is not None and event.record_kind not in self.kinds:
            return False
        return True


class EventEmitter:
    """Synchronous fan-out of domain events to subscribers.

    Usage:
        emitter = EventEmitter()
        emitter.on(RecordPaid, send_payment_letter)
        emitter.on_kind(RecordKindName.GRATUITY, notify_settlement_desk)
        emitter.emit(RecordPaid(...))
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def on(self, event_type: type[E] | list[type[E]], handler: EventHandler) -> None:
        """Subscribe to one event class or a list of them."""
        classes = event_type if isinstance(event_type, list) else [event_type]
        self._subscriptions.append(
            Subscription(handler, event_names=frozenset(c.__name__ for c in classes))
        )

    def on_kind(self, kind: RecordKindName, handler: EventHandler) -> None:
        """Subscribe to every event about one record kind."""
        self._subscriptions.append(Subscription(handler, kinds=frozenset({kind})))

    def on_all(self, handler: EventHandler) -> None:
        self._subscriptions.append(Subscription(handler))

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Deliver ``event``; returns the exceptions raised by subscribers."""
        failures: list[Exception] = []
        for subscription in self._subscriptions:
            if not subscription.wants(event):
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.exception(
                    "Subscriber %r failed on %s for %s record %s",
                    subscription.handler,
                    event.event_type,
                    event.record_kind.value,
                    event.record_id,
                )
                failures.append(e)
        return failures
