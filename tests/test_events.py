"""Tests for lifecycle domain events.

Tests verify:
1. Events carry what downstream notifiers need and serialize cleanly
2. The emitter routes to the right handlers
3. Handler errors are isolated
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from statutory_payroll.events import (
    EventEmitter,
    RecordKindName,
    RecordPaid,
    RecordSuperseded,
)


def paid_event(**overrides) -> RecordPaid:
    fields = dict(
        record_kind=RecordKindName.BONUS,
        record_id=uuid4(),
        employee_id=uuid4(),
        amount=Decimal("583.10"),
        paid_on=datetime(2024, 4, 30, tzinfo=timezone.utc),
        period="2023-24",
    )
    fields.update(overrides)
    return RecordPaid(**fields)


class TestEventTypes:
    def test_auto_generated_fields(self):
        event = paid_event()

        assert event.event_id is not None
        assert event.timestamp.tzinfo is not None
        assert event.event_type == "RecordPaid"

    def test_to_dict_is_json_friendly(self):
        event = paid_event()
        payload = event.to_dict()

        assert payload["event_type"] == "RecordPaid"
        assert payload["record_kind"] == "bonus"
        assert payload["amount"] == "583.10"
        assert payload["paid_on"] == "2024-04-30T00:00:00+00:00"
        assert payload["record_id"] == str(event.record_id)
        assert payload["period"] == "2023-24"

    def test_superseded_event(self):
        event = RecordSuperseded(
            record_kind=RecordKindName.GRATUITY,
            record_id=uuid4(),
            employee_id=uuid4(),
            previous_status="ELIGIBLE",
            reason="wrong joining date",
        )

        assert event.to_dict()["previous_status"] == "ELIGIBLE"
        assert event.to_dict()["record_kind"] == "gratuity"


class TestEventEmitter:
    """Test synchronous event emitter."""

    def test_handler_receives_matching_events_only(self):
        emitter = EventEmitter()
        received = []
        emitter.on(RecordPaid, received.append)

        emitter.emit(paid_event())
        emitter.emit(
            RecordSuperseded(
                record_kind=RecordKindName.BONUS, record_id=uuid4(), employee_id=uuid4()
            )
        )

        assert [e.event_type for e in received] == ["RecordPaid"]

    def test_multiple_event_types(self):
        emitter = EventEmitter()
        received = []
        emitter.on([RecordPaid, RecordSuperseded], received.append)

        emitter.emit(paid_event())
        emitter.emit(
            RecordSuperseded(
                record_kind=RecordKindName.BONUS, record_id=uuid4(), employee_id=uuid4()
            )
        )

        assert len(received) == 2

    def test_on_all_receives_every_event(self):
        emitter = EventEmitter()
        received = []
        emitter.on_all(received.append)

        emitter.emit(paid_event())
        emitter.emit(
            RecordSuperseded(
                record_kind=RecordKindName.GRATUITY, record_id=uuid4(), employee_id=uuid4()
            )
        )

        assert [e.event_type for e in received] == ["RecordPaid", "RecordSuperseded"]

    def test_handler_errors_isolated(self, caplog):
        """A failing handler is logged and the rest still run."""
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("smtp unavailable")

        emitter.on(RecordPaid, broken)
        emitter.on(RecordPaid, received.append)

        errors = emitter.emit(paid_event())

        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)
        assert len(received) == 1
        assert "failed on RecordPaid" in caplog.text

    def test_kind_subscription(self):
        emitter = EventEmitter()
        received = []
        emitter.on_kind(RecordKindName.GRATUITY, received.append)

        emitter.emit(paid_event())
        emitter.emit(paid_event(record_kind=RecordKindName.GRATUITY, period=None))

        assert [e.record_kind for e in received] == [RecordKindName.GRATUITY]
