"""Bonus and gratuity formulas.

Pure functions, no I/O. All arithmetic is done in ``Decimal`` and rounded
once at the end so amounts are reproducible for audit.

Bonus (Payment of Bonus Act):
    eligible  = basic_salary <= 21,000
    base      = min(basic_salary, 7,000)
    bonus     = base * rate% * months/12      (0 when not eligible)

Gratuity (Payment of Gratuity Act):
    eligible  = years_of_service >= 5
    gratuity  = last_drawn_basic_plus_da * 15 * years / 26   (0 when not eligible)
    capped    = min(gratuity, 20,00,000)
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

from statutory_payroll.calculators.types import (
    DEFAULT_RULES,
    RATE_QUANT,
    YEARS_QUANT,
    BonusComputation,
    GratuityComputation,
    StatutoryRules,
    quantize_money,
)
from statutory_payroll.errors import (
    InvalidAmountError,
    InvalidDateRangeError,
    InvalidMonthsError,
    InvalidRateError,
)


def to_decimal(value: Any) -> Decimal:
    """Convert int/str/float/Decimal to a finite Decimal.

    Floats go through ``str`` so 8.33 stays 8.33 rather than its binary
    approximation. Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as e:
            raise ValueError(f"not a number: {value!r}") from e
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"not a number: {value!r}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def _money_input(field_name: str, value: Any) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise InvalidAmountError(field_name, value) from e
    # Eligibility ceilings compare exact amounts, so sub-paise input is refused
    if amount < 0 or amount != quantize_money(amount):
        raise InvalidAmountError(field_name, value)
    return quantize_money(amount)


def validate_bonus_rate(rate: Any, rules: StatutoryRules = DEFAULT_RULES) -> Decimal:
    """Validate a bonus rate against the statutory band and quantize it."""
    try:
        value = to_decimal(rate)
    except ValueError as e:
        raise InvalidRateError(rate, rules.bonus_min_rate, rules.bonus_max_rate) from e
    if not rules.bonus_min_rate <= value <= rules.bonus_max_rate:
        raise InvalidRateError(value, rules.bonus_min_rate, rules.bonus_max_rate)
    return value.quantize(RATE_QUANT, rounding=ROUND_DOWN)


def validate_months_worked(months: Any) -> int:
    if isinstance(months, bool) or not isinstance(months, int):
        raise InvalidMonthsError(months)
    if not 0 <= months <= 12:
        raise InvalidMonthsError(months)
    return months


def compute_bonus(
    basic_salary: Any,
    months_worked: Any = 12,
    bonus_rate: Any = None,
    rules: StatutoryRules = DEFAULT_RULES,
) -> BonusComputation:
    """Compute statutory bonus for one financial year.

    Args:
        basic_salary: Monthly basic salary (input fact)
        months_worked: Whole months worked in the financial year, 0-12
        bonus_rate: Percentage between the statutory min and max;
            defaults to the statutory minimum
        rules: Statutory ceilings and rates

    Raises:
        InvalidRateError, InvalidMonthsError, InvalidAmountError
    """
    rate = validate_bonus_rate(
        rules.bonus_default_rate if bonus_rate is None else bonus_rate, rules
    )
    months = validate_months_worked(months_worked)
    salary = _money_input("basic_salary", basic_salary)

    is_eligible = salary <= rules.bonus_eligibility_ceiling
    calculation_base = min(salary, rules.bonus_calculation_cap)

    if is_eligible:
        bonus_amount = quantize_money(
            calculation_base * rate / Decimal("100") * Decimal(months) / Decimal("12")
        )
    else:
        bonus_amount = quantize_money(Decimal("0"))

    return BonusComputation(
        basic_salary=salary,
        bonus_rate=rate,
        months_worked=months,
        is_eligible=is_eligible,
        calculation_base=calculation_base,
        bonus_amount=bonus_amount,
    )


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _add_years(start: date, years: int) -> date:
    """Anniversary of ``start`` after ``years`` years; Feb 29 falls back to Feb 28."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def years_of_service(date_of_joining: date | datetime, reference_date: date | datetime) -> Decimal:
    """Fractional years between two dates.

    Completed anniversary years plus the elapsed share of the current
    anniversary year, truncated to 4 places so a service of 4.99999 years
    never rounds up into eligibility. 2018-01-01 to 2024-01-01 is exactly 6.
    """
    start = _as_date(date_of_joining)
    end = _as_date(reference_date)
    if end < start:
        raise InvalidDateRangeError(start, end)

    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1

    anniversary = _add_years(start, years)
    next_anniversary = _add_years(start, years + 1)

    fraction = Decimal((end - anniversary).days) / Decimal((next_anniversary - anniversary).days)
    return (Decimal(years) + fraction).quantize(YEARS_QUANT, rounding=ROUND_DOWN)


def compute_gratuity(
    date_of_joining: date | datetime,
    reference_date: date | datetime,
    last_drawn_basic_plus_da: Any,
    rules: StatutoryRules = DEFAULT_RULES,
) -> GratuityComputation:
    """Compute gratuity accrued as of ``reference_date``.

    The reference date is the date of exit for a separated employee and the
    accrual check date otherwise. The amount is computed from the
    quantized years of service so the stored years reproduce the stored
    amount.

    Raises:
        InvalidDateRangeError, InvalidAmountError
    """
    last_drawn = _money_input("last_drawn_basic_plus_da", last_drawn_basic_plus_da)
    service = years_of_service(date_of_joining, reference_date)

    is_eligible = service >= rules.gratuity_eligibility_years
    if is_eligible:
        gratuity_amount = quantize_money(
            last_drawn * rules.gratuity_wage_days * service / rules.gratuity_working_days
        )
    else:
        gratuity_amount = quantize_money(Decimal("0"))

    return GratuityComputation(
        date_of_joining=_as_date(date_of_joining),
        reference_date=_as_date(reference_date),
        last_drawn_basic_plus_da=last_drawn,
        years_of_service=service,
        is_eligible=is_eligible,
        gratuity_amount=gratuity_amount,
        capped_amount=min(gratuity_amount, quantize_money(rules.gratuity_cap)),
    )
