"""Lifecycle tests: submission, approval, payment and supersession."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from statutory_payroll.errors import (
    InvalidRateError,
    InvalidTransitionError,
    RecordNotFoundError,
    ValidationError,
)
from statutory_payroll.events import RecordKindName, RecordPaid, RecordSuperseded
from statutory_payroll.models.base import as_utc
from statutory_payroll.services.lifecycle import BonusFacts, GratuityFacts


pytestmark = pytest.mark.asyncio


def bonus_facts(employee_id, salary="15000", fy="2023-24", **kwargs) -> BonusFacts:
    return BonusFacts(
        employee_id=employee_id,
        financial_year=fy,
        basic_salary=Decimal(salary),
        **kwargs,
    )


def gratuity_facts(employee_id, reference=date(2024, 1, 1), **kwargs) -> GratuityFacts:
    kwargs.setdefault("date_of_joining", date(2018, 1, 1))
    kwargs.setdefault("last_drawn_basic_plus_da", Decimal("30000"))
    return GratuityFacts(employee_id=employee_id, reference_date=reference, **kwargs)


class TestBonusSubmit:
    async def test_new_record_is_pending(self, bonuses, employee_id):
        result = await bonuses.submit(bonus_facts(employee_id))

        assert result.is_new is True
        assert result.record.status == "PENDING"
        assert result.record.is_eligible is True
        assert result.record.bonus_amount == Decimal("583.10")

    async def test_same_facts_twice_is_idempotent(self, bonuses, employee_id):
        first = await bonuses.submit(bonus_facts(employee_id))
        second = await bonuses.submit(bonus_facts(employee_id))

        assert second.is_new is False
        assert second.changed is False
        assert second.record.record_id == first.record.record_id
        assert len(await bonuses.history(employee_id)) == 1

    async def test_pending_record_recomputed_in_place(self, bonuses, employee_id):
        first = await bonuses.submit(bonus_facts(employee_id, salary="15000"))
        second = await bonuses.submit(bonus_facts(employee_id, salary="5000"))

        assert second.changed is True
        assert second.record.record_id == first.record.record_id
        assert second.record.bonus_amount == Decimal("416.50")

    async def test_ineligible_salary_stored_with_zero_amount(self, bonuses, employee_id):
        result = await bonuses.submit(bonus_facts(employee_id, salary="25000"))

        assert result.record.is_eligible is False
        assert result.record.bonus_amount == Decimal("0")

    async def test_blank_financial_year_rejected_before_write(self, bonuses, employee_id):
        with pytest.raises(ValidationError):
            await bonuses.submit(bonus_facts(employee_id, fy="  "))

        assert await bonuses.history(employee_id) == []

    async def test_invalid_rate_rejected_before_write(self, bonuses, employee_id):
        with pytest.raises(InvalidRateError):
            await bonuses.submit(bonus_facts(employee_id, bonus_rate=Decimal("25")))

        assert await bonuses.history(employee_id) == []

    async def test_approved_record_identical_resubmission_is_noop(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        again = await bonuses.submit(bonus_facts(employee_id))

        assert again.changed is False
        assert again.record.status == "APPROVED"

    async def test_approved_record_refuses_different_amounts(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await bonuses.submit(bonus_facts(employee_id, salary="5000"))

        assert exc_info.value.from_status == "APPROVED"
        record = await bonuses.get(created.record.record_id)
        assert record.bonus_amount == Decimal("583.10")


class TestBonusTransitions:
    async def test_full_lifecycle(self, bonuses, employee_id, recorded):
        created = await bonuses.submit(bonus_facts(employee_id))
        record_id = created.record.record_id

        approved = await bonuses.approve(record_id)
        assert approved.status == "APPROVED"

        paid = await bonuses.mark_paid(record_id)
        assert paid.status == "PAID"
        assert paid.paid_on is not None

        events = recorded.of_type(RecordPaid)
        assert len(events) == 1
        assert events[0].record_kind == RecordKindName.BONUS
        assert events[0].record_id == record_id
        assert events[0].employee_id == employee_id
        assert events[0].amount == Decimal("583.10")
        assert events[0].period == "2023-24"

    async def test_pay_requires_approval(self, bonuses, employee_id, recorded):
        created = await bonuses.submit(bonus_facts(employee_id))

        with pytest.raises(InvalidTransitionError) as exc_info:
            await bonuses.mark_paid(created.record.record_id)

        assert "only APPROVED records can be paid" in str(exc_info.value)
        assert recorded.events == []
        record = await bonuses.get(created.record.record_id)
        assert record.status == "PENDING"
        assert record.paid_on is None

    async def test_approve_twice_rejected(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        with pytest.raises(InvalidTransitionError):
            await bonuses.approve(created.record.record_id)

    async def test_paid_on_before_creation_rejected(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        with pytest.raises(InvalidTransitionError):
            await bonuses.mark_paid(
                created.record.record_id, datetime(2000, 1, 1, tzinfo=timezone.utc)
            )

        record = await bonuses.get(created.record.record_id)
        assert record.status == "APPROVED"

    async def test_paid_on_creation_day_accepted(self, bonuses, employee_id, recorded):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        today = datetime.now(timezone.utc).date()
        paid = await bonuses.mark_paid(created.record.record_id, today)

        assert paid.status == "PAID"

        stored = await bonuses.get(created.record.record_id)
        assert as_utc(stored.paid_on) >= as_utc(stored.created_at)
        assert as_utc(stored.paid_on).date() == today
        assert recorded.of_type(RecordPaid)[0].paid_on == as_utc(stored.paid_on)

    async def test_paid_record_cannot_be_paid_again(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)
        await bonuses.mark_paid(created.record.record_id)

        with pytest.raises(InvalidTransitionError):
            await bonuses.mark_paid(created.record.record_id)

    async def test_missing_record(self, bonuses):
        with pytest.raises(RecordNotFoundError):
            await bonuses.approve(uuid4())
        with pytest.raises(RecordNotFoundError):
            await bonuses.get(uuid4())

    async def test_failing_handler_does_not_undo_payment(self, bonuses, emitter, employee_id):
        def broken(event):
            raise RuntimeError("mailer down")

        emitter.on(RecordPaid, broken)
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        paid = await bonuses.mark_paid(created.record.record_id)

        assert paid.status == "PAID"
        assert (await bonuses.get(created.record.record_id)).status == "PAID"


class TestSupersede:
    async def test_supersede_frees_key_for_corrected_record(self, bonuses, employee_id, recorded):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)

        superseded = await bonuses.supersede(created.record.record_id, "wrong salary")
        corrected = await bonuses.submit(bonus_facts(employee_id, salary="5000"))

        assert superseded.status == "SUPERSEDED"
        assert superseded.remarks == "wrong salary"
        assert corrected.is_new is True
        assert corrected.record.status == "PENDING"

        history = await bonuses.history(employee_id)
        assert [r.status for r in history] == ["SUPERSEDED", "PENDING"]

        active = await bonuses.find_active(
            {"employee_id": employee_id, "financial_year": "2023-24"}
        )
        assert active.record_id == corrected.record.record_id

        events = recorded.of_type(RecordSuperseded)
        assert len(events) == 1
        assert events[0].previous_status == "APPROVED"
        assert events[0].reason == "wrong salary"

    async def test_paid_record_cannot_be_superseded(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.approve(created.record.record_id)
        await bonuses.mark_paid(created.record.record_id)

        with pytest.raises(InvalidTransitionError):
            await bonuses.supersede(created.record.record_id)

    async def test_supersede_twice_rejected(self, bonuses, employee_id):
        created = await bonuses.submit(bonus_facts(employee_id))
        await bonuses.supersede(created.record.record_id)

        with pytest.raises(InvalidTransitionError):
            await bonuses.supersede(created.record.record_id)


class TestGratuity:
    async def test_six_years_is_eligible_immediately(self, gratuities, employee_id):
        result = await gratuities.submit(gratuity_facts(employee_id))

        assert result.is_new is True
        assert result.record.status == "ELIGIBLE"
        assert result.record.years_of_service == Decimal("6")
        assert result.record.capped_amount == Decimal("103846.15")

    async def test_accrues_until_eligible(self, gratuities, employee_id):
        facts = dict(date_of_joining=date(2021, 1, 1))
        first = await gratuities.submit(
            gratuity_facts(employee_id, reference=date(2024, 1, 1), **facts)
        )
        assert first.record.status == "ACCRUING"
        assert first.record.capped_amount == Decimal("0")

        second = await gratuities.submit(
            gratuity_facts(employee_id, reference=date(2026, 1, 1), **facts)
        )
        assert second.record.record_id == first.record.record_id
        assert second.record.status == "ELIGIBLE"
        assert second.record.capped_amount == Decimal("86538.46")

    async def test_eligible_record_cannot_regress(self, gratuities, employee_id):
        await gratuities.submit(gratuity_facts(employee_id))

        with pytest.raises(InvalidTransitionError):
            await gratuities.submit(gratuity_facts(employee_id, reference=date(2020, 1, 1)))

        active = await gratuities.find_active({"employee_id": employee_id})
        assert active.status == "ELIGIBLE"

    async def test_exit_date_overrides_reference_date(self, gratuities, employee_id):
        result = await gratuities.submit(
            gratuity_facts(employee_id, reference=date(2030, 1, 1), date_of_exit=date(2024, 1, 1))
        )

        assert result.record.date_of_exit == date(2024, 1, 1)
        assert result.record.years_of_service == Decimal("6")

    async def test_accruing_record_cannot_be_paid(self, gratuities, employee_id):
        created = await gratuities.submit(
            gratuity_facts(employee_id, date_of_joining=date(2022, 1, 1))
        )

        with pytest.raises(InvalidTransitionError):
            await gratuities.mark_paid(created.record.record_id)

    async def test_eligible_record_paid(self, gratuities, employee_id, recorded):
        created = await gratuities.submit(gratuity_facts(employee_id))

        paid = await gratuities.mark_paid(created.record.record_id)

        assert paid.status == "PAID"
        events = recorded.of_type(RecordPaid)
        assert events[0].record_kind == RecordKindName.GRATUITY
        assert events[0].amount == Decimal("103846.15")
        assert events[0].period is None

    async def test_paid_record_identical_resubmission_is_noop(self, gratuities, employee_id):
        created = await gratuities.submit(gratuity_facts(employee_id))
        await gratuities.mark_paid(created.record.record_id)

        again = await gratuities.submit(gratuity_facts(employee_id))

        assert again.is_new is False
        assert again.changed is False
        assert again.record.status == "PAID"

    async def test_invalid_dates_rejected_before_write(self, gratuities, employee_id):
        with pytest.raises(ValidationError):
            await gratuities.submit(
                gratuity_facts(employee_id, reference=date(2017, 1, 1))
            )

        assert await gratuities.history(employee_id) == []
