"""Bonus and gratuity record models.

Neither table declares its uniqueness rule here. The status-scoped unique
index ("one active record per key") is owned by the constraint reconciler,
because the active-status set is configuration and can change without a
schema migration.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from statutory_payroll.models.base import Base, TimestampMixin


class BonusRecord(Base, TimestampMixin):
    """Annual statutory bonus for one employee and financial year."""

    __tablename__ = "bonus_record"

    bonus_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)
    financial_year: Mapped[str] = mapped_column(String(16), nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    is_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonus_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("8.33")
    )
    calculation_base: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    months_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    bonus_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    paid_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'PAID', 'SUPERSEDED')",
            name="bonus_record_status_check",
        ),
        CheckConstraint(
            "months_worked >= 0 AND months_worked <= 12",
            name="bonus_record_months_check",
        ),
        CheckConstraint(
            "status <> 'PAID' OR paid_on IS NOT NULL",
            name="bonus_record_paid_on_check",
        ),
        Index("ix_bonus_record_employee_id", "employee_id"),
    )

    @property
    def record_id(self) -> UUID:
        return self.bonus_record_id

    @property
    def amount(self) -> Decimal:
        """Amount payable on this record."""
        return self.bonus_amount

    def __repr__(self) -> str:
        return (
            f"<BonusRecord(id={self.bonus_record_id}, employee={self.employee_id}, "
            f"fy='{self.financial_year}', status='{self.status}', amount={self.bonus_amount})>"
        )


class GratuityRecord(Base, TimestampMixin):
    """Gratuity accrued over an employee's current employment spell."""

    __tablename__ = "gratuity_record"

    gratuity_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)

    date_of_joining: Mapped[date] = mapped_column(Date, nullable=False)
    date_of_exit: Mapped[date | None] = mapped_column(Date, nullable=True)
    years_of_service: Mapped[Decimal] = mapped_column(
        Numeric(8, 4), nullable=False, default=Decimal("0")
    )
    is_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_drawn_basic_plus_da: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    # (last drawn * 15 * years) / 26
    gratuity_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    capped_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACCRUING")
    paid_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACCRUING', 'ELIGIBLE', 'PAID', 'SUPERSEDED')",
            name="gratuity_record_status_check",
        ),
        CheckConstraint(
            "date_of_exit IS NULL OR date_of_exit >= date_of_joining",
            name="gratuity_record_dates_check",
        ),
        CheckConstraint(
            "status <> 'PAID' OR paid_on IS NOT NULL",
            name="gratuity_record_paid_on_check",
        ),
        Index("ix_gratuity_record_employee_id", "employee_id"),
    )

    @property
    def record_id(self) -> UUID:
        return self.gratuity_record_id

    @property
    def amount(self) -> Decimal:
        """Amount payable on this record (after the statutory cap)."""
        return self.capped_amount

    def __repr__(self) -> str:
        return (
            f"<GratuityRecord(id={self.gratuity_record_id}, employee={self.employee_id}, "
            f"status='{self.status}', capped={self.capped_amount})>"
        )
