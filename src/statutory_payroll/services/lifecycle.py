"""Lifecycle manager for bonus and gratuity records.

Submit computes amounts from employee facts and writes them through the
record store's active-record upsert. Approve/pay/supersede advance the
record through its state machine, one transaction per call. Successful
payment and supersession are published as domain events for downstream
consumers; this module never notifies anyone directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Generic
from uuid import UUID

from statutory_payroll.calculators import (
    DEFAULT_RULES,
    StatutoryRules,
    compute_bonus,
    compute_gratuity,
)
from statutory_payroll.config import Settings
from statutory_payroll.errors import InvalidTransitionError, RecordNotFoundError, ValidationError
from statutory_payroll.events import EventEmitter, RecordPaid, RecordSuperseded
from statutory_payroll.models import BonusRecord, GratuityRecord
from statutory_payroll.models.base import as_utc, utcnow
from statutory_payroll.services.record_store import R, RecordStore, UpsertResult
from statutory_payroll.services.state_machine import (
    BonusStateMachine,
    BonusStatus,
    GratuityStateMachine,
)

logger = logging.getLogger(__name__)


def _status_value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


def _as_timestamp(value: datetime | date | None) -> datetime:
    if value is None:
        return utcnow()
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min, tzinfo=timezone.utc)
    return as_utc(value)


@dataclass(frozen=True)
class BonusFacts:
    """Employee facts supplied by a payroll run for the bonus computation."""

    employee_id: UUID
    financial_year: str
    basic_salary: Any
    months_worked: int = 12
    bonus_rate: Any = None  # None = statutory default
    branch_id: UUID | None = None


@dataclass(frozen=True)
class GratuityFacts:
    """Employee facts supplied by an accrual run or an exit."""

    employee_id: UUID
    date_of_joining: date
    last_drawn_basic_plus_da: Any
    date_of_exit: date | None = None
    reference_date: date | None = None  # accrual check date when not exited
    remarks: str | None = None

    def effective_reference_date(self) -> date:
        """Exit date if separated, else the given reference date, else today."""
        return self.date_of_exit or self.reference_date or date.today()


class RecordLifecycle(Generic[R]):
    """Operations shared by both record kinds."""

    def __init__(
        self,
        store: RecordStore[R],
        emitter: EventEmitter | None = None,
        rules: StatutoryRules = DEFAULT_RULES,
    ):
        self.store = store
        self.emitter = emitter or EventEmitter()
        self.rules = rules

    @property
    def state_machine(self):
        return self.store.kind.state_machine

    @property
    def kind_name(self) -> str:
        return self.store.kind.name.value

    async def get(self, record_id: UUID) -> R:
        record = await self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(self.kind_name, record_id)
        return record

    async def find_active(self, key: dict[str, Any]) -> R | None:
        return await self.store.find_active(key)

    async def history(self, employee_id: UUID) -> list[R]:
        return await self.store.list_by_employee(employee_id)

    def _guard_recompute(self, record: R, fields: dict[str, Any]) -> dict[str, Any]:
        """Allow in-place recomputation only in recalculable statuses.

        In any other status an identical recomputation is an idempotent
        no-op and a different one is refused.
        """
        fields.pop("status", None)
        if self.state_machine.can_calculate(record.status):
            return fields
        if all(getattr(record, name) == value for name, value in fields.items()):
            return {}
        raise InvalidTransitionError(
            record.status,
            _status_value(self.state_machine.INITIAL),
            f"{self.kind_name} record is {record.status}; supersede it before recomputing",
        )

    async def _submit(
        self,
        key: dict[str, Any],
        fields: dict[str, Any],
        initial_status: str,
    ) -> UpsertResult[R]:
        result = await self.store.upsert_active(
            key,
            {**fields, "status": _status_value(initial_status)},
            on_existing=self._on_existing,
        )
        if result.is_new:
            logger.info("Created %s record %s for %s", self.kind_name, result.record.record_id, key)
        elif result.changed:
            logger.info("Recomputed %s record %s for %s", self.kind_name, result.record.record_id, key)
        else:
            logger.debug("Resubmission of %s record %s left it unchanged", self.kind_name, result.record.record_id)
        return result

    def _on_existing(self, record: R, fields: dict[str, Any]) -> dict[str, Any]:
        return self._guard_recompute(record, fields)

    async def mark_paid(self, record_id: UUID, paid_on: datetime | date | None = None) -> R:
        """Move a payable record to PAID.

        Raises:
            InvalidTransitionError: If the record is not payable, or ``paid_on``
                precedes the record's creation
            RecordNotFoundError: If no record has ``record_id``
        """
        sm = self.state_machine
        paid_at = _as_timestamp(paid_on)
        # A bare date counts as the whole day
        date_only = paid_on is not None and not isinstance(paid_on, datetime)

        def mutate(record: R) -> None:
            sm.validate_transition(
                record.status, sm.PAID, f"only {_status_value(sm.PAYABLE)} records can be paid"
            )
            created_at = as_utc(record.created_at)
            if (paid_at.date() < created_at.date()) if date_only else (paid_at < created_at):
                raise InvalidTransitionError(
                    record.status,
                    _status_value(sm.PAID),
                    f"paid_on {paid_at.isoformat()} precedes record creation",
                )
            record.status = _status_value(sm.PAID)
            # Paying on the creation day must not stamp a time before creation
            record.paid_on = max(paid_at, created_at) if date_only else paid_at

        record = await self.store.transition(record_id, mutate)
        logger.info("Marked %s record %s paid (%s)", self.kind_name, record_id, record.amount)

        self.emitter.emit(
            RecordPaid(
                record_kind=self.store.kind.name,
                record_id=record.record_id,
                employee_id=record.employee_id,
                amount=record.amount,
                paid_on=as_utc(record.paid_on),
                period=getattr(record, "financial_year", None),
            )
        )
        return record

    async def supersede(self, record_id: UUID, reason: str | None = None) -> R:
        """Retire a record so a corrected one can take its key.

        Raises:
            InvalidTransitionError: If the record is PAID or already superseded
            RecordNotFoundError: If no record has ``record_id``
        """
        sm = self.state_machine
        previous: dict[str, str] = {}

        def mutate(record: R) -> None:
            sm.validate_transition(record.status, sm.SUPERSEDED)
            previous["status"] = record.status
            record.status = _status_value(sm.SUPERSEDED)
            if reason:
                record.remarks = reason

        record = await self.store.transition(record_id, mutate)
        logger.info(
            "Superseded %s record %s (was %s)", self.kind_name, record_id, previous["status"]
        )

        self.emitter.emit(
            RecordSuperseded(
                record_kind=self.store.kind.name,
                record_id=record.record_id,
                employee_id=record.employee_id,
                previous_status=previous["status"],
                reason=reason,
            )
        )
        return record


class BonusLifecycle(RecordLifecycle[BonusRecord]):
    """PENDING → APPROVED → PAID."""

    @classmethod
    def create(
        cls,
        database: Any,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
        rules: StatutoryRules = DEFAULT_RULES,
    ) -> BonusLifecycle:
        return cls(RecordStore.for_bonus(database, settings), emitter, rules)

    async def submit(self, facts: BonusFacts) -> UpsertResult[BonusRecord]:
        """Create or recompute the active bonus record for (employee, financial year).

        Raises:
            InvalidRateError, InvalidMonthsError, InvalidAmountError: before any write
            InvalidTransitionError: If the active record is no longer recalculable
                and the new facts change its amounts
            ConstraintViolationError: If concurrent writers kept colliding
        """
        financial_year = (facts.financial_year or "").strip()
        if not financial_year:
            raise ValidationError("financial_year is required")

        computation = compute_bonus(
            facts.basic_salary,
            months_worked=facts.months_worked,
            bonus_rate=facts.bonus_rate,
            rules=self.rules,
        )
        fields = computation.to_fields()
        fields["branch_id"] = facts.branch_id

        return await self._submit(
            {"employee_id": facts.employee_id, "financial_year": financial_year},
            fields,
            BonusStateMachine.INITIAL,
        )

    async def approve(self, record_id: UUID) -> BonusRecord:
        """PENDING → APPROVED.

        Raises:
            InvalidTransitionError: From any other status
            RecordNotFoundError: If no record has ``record_id``
        """

        def mutate(record: BonusRecord) -> None:
            BonusStateMachine.validate_transition(record.status, BonusStatus.APPROVED)
            record.status = BonusStatus.APPROVED.value

        record = await self.store.transition(record_id, mutate)
        logger.info("Approved bonus record %s (%s)", record_id, record.bonus_amount)
        return record


class GratuityLifecycle(RecordLifecycle[GratuityRecord]):
    """ACCRUING → ELIGIBLE → PAID, with ELIGIBLE gated on years of service."""

    @classmethod
    def create(
        cls,
        database: Any,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
        rules: StatutoryRules = DEFAULT_RULES,
    ) -> GratuityLifecycle:
        return cls(RecordStore.for_gratuity(database, settings), emitter, rules)

    def _on_existing(self, record: GratuityRecord, fields: dict[str, Any]) -> dict[str, Any]:
        fields = self._guard_recompute(record, fields)
        if fields:
            fields["status"] = _status_value(
                GratuityStateMachine.status_for_eligibility(record.status, fields["is_eligible"])
            )
        return fields

    async def submit(self, facts: GratuityFacts) -> UpsertResult[GratuityRecord]:
        """Create or recompute the active gratuity record for the employee.

        Raises:
            InvalidDateRangeError, InvalidAmountError: before any write
            InvalidTransitionError: If the active record is no longer recalculable
                and the new facts change its amounts
            ConstraintViolationError: If concurrent writers kept colliding
        """
        computation = compute_gratuity(
            facts.date_of_joining,
            facts.effective_reference_date(),
            facts.last_drawn_basic_plus_da,
            rules=self.rules,
        )
        fields = computation.to_fields()
        fields["date_of_exit"] = facts.date_of_exit
        if facts.remarks is not None:
            fields["remarks"] = facts.remarks

        return await self._submit(
            {"employee_id": facts.employee_id},
            fields,
            GratuityStateMachine.status_for_eligibility(None, computation.is_eligible),
        )
