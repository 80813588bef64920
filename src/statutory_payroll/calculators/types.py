"""Type definitions for the statutory calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.01")
YEARS_QUANT = Decimal("0.0001")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to paise, half-up."""
    return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class StatutoryRules:
    """Statutory ceilings and rates for bonus and gratuity.

    Defaults are the values of the Payment of Bonus Act and the Payment of
    Gratuity Act. Overrides exist for notified revisions of the ceilings.
    """

    bonus_eligibility_ceiling: Decimal = Decimal("21000")
    bonus_calculation_cap: Decimal = Decimal("7000")
    bonus_min_rate: Decimal = Decimal("8.33")
    bonus_max_rate: Decimal = Decimal("20")
    bonus_default_rate: Decimal = Decimal("8.33")

    gratuity_eligibility_years: Decimal = Decimal("5")
    gratuity_wage_days: Decimal = Decimal("15")  # 15 days' wages per year
    gratuity_working_days: Decimal = Decimal("26")  # working days in a month
    gratuity_cap: Decimal = Decimal("2000000")

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.bonus_min_rate > self.bonus_max_rate:
            raise ValueError("bonus_min_rate cannot exceed bonus_max_rate")
        if not self.bonus_min_rate <= self.bonus_default_rate <= self.bonus_max_rate:
            raise ValueError("bonus_default_rate must lie within the rate band")
        if self.gratuity_working_days <= 0:
            raise ValueError("gratuity_working_days must be positive")


DEFAULT_RULES = StatutoryRules()


@dataclass(frozen=True)
class BonusComputation:
    """Result of the bonus formula for one employee and financial year."""

    basic_salary: Decimal
    bonus_rate: Decimal
    months_worked: int
    is_eligible: bool
    calculation_base: Decimal
    bonus_amount: Decimal

    def to_fields(self) -> dict[str, Any]:
        """Return the persisted columns this computation determines."""
        return {
            "basic_salary": self.basic_salary,
            "bonus_rate": self.bonus_rate,
            "months_worked": self.months_worked,
            "is_eligible": self.is_eligible,
            "calculation_base": self.calculation_base,
            "bonus_amount": self.bonus_amount,
        }


@dataclass(frozen=True)
class GratuityComputation:
    """Result of the gratuity formula as of a reference date."""

    date_of_joining: date
    reference_date: date
    last_drawn_basic_plus_da: Decimal
    years_of_service: Decimal
    is_eligible: bool
    gratuity_amount: Decimal
    capped_amount: Decimal

    @property
    def is_capped(self) -> bool:
        return self.capped_amount < self.gratuity_amount

    def to_fields(self) -> dict[str, Any]:
        """Return the persisted columns this computation determines."""
        return {
            "date_of_joining": self.date_of_joining,
            "last_drawn_basic_plus_da": self.last_drawn_basic_plus_da,
            "years_of_service": self.years_of_service,
            "is_eligible": self.is_eligible,
            "gratuity_amount": self.gratuity_amount,
            "capped_amount": self.capped_amount,
        }
