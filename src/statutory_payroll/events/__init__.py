"""Lifecycle domain events."""

from statutory_payroll.events.emitter import EventEmitter, EventHandler
from statutory_payroll.events.types import (
    DomainEvent,
    RecordKindName,
    RecordPaid,
    RecordSuperseded,
)

__all__ = [
    "EventEmitter",
    "EventHandler",
    "DomainEvent",
    "RecordKindName",
    "RecordPaid",
    "RecordSuperseded",
]
