"""Statutory bonus and gratuity formulas."""

from statutory_payroll.calculators.statutory import (
    compute_bonus,
    compute_gratuity,
    to_decimal,
    validate_bonus_rate,
    validate_months_worked,
    years_of_service,
)
from statutory_payroll.calculators.types import (
    DEFAULT_RULES,
    BonusComputation,
    GratuityComputation,
    StatutoryRules,
    quantize_money,
)

__all__ = [
    "compute_bonus",
    "compute_gratuity",
    "to_decimal",
    "validate_bonus_rate",
    "validate_months_worked",
    "years_of_service",
    "DEFAULT_RULES",
    "BonusComputation",
    "GratuityComputation",
    "StatutoryRules",
    "quantize_money",
]
