"""Domain events for statutory record lifecycle.

Events are the hand-off point to external consumers (payment notifications,
letters). They are immutable and carry everything a renderer needs besides
the employee's display details, which consumers look up themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from statutory_payroll.models.base import utcnow


class RecordKindName(str, Enum):
    """Record kinds carried on events."""

    BONUS = "bonus"
    GRATUITY = "gratuity"


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    record_kind: RecordKindName
    record_id: UUID
    employee_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging or an outbox."""
        payload: dict[str, Any] = {"event_type": self.event_type}
        for name, value in self.__dict__.items():
            if isinstance(value, (UUID, Decimal)):
                payload[name] = str(value)
            elif isinstance(value, datetime):
                payload[name] = value.isoformat()
            elif isinstance(value, Enum):
                payload[name] = value.value
            else:
                payload[name] = value
        return payload


@dataclass(frozen=True)
class RecordPaid(DomainEvent):
    """A bonus or gratuity record was marked paid."""

    amount: Decimal = Decimal("0")
    paid_on: datetime | None = None
    period: str | None = None  # financial year for bonus records


@dataclass(frozen=True)
class RecordSuperseded(DomainEvent):
    """A record left the active set and its key is free for a fresh record."""

    previous_status: str = ""
    reason: str | None = None
