"""ORM models."""

from statutory_payroll.models.base import Base, TimestampMixin
from statutory_payroll.models.statutory import BonusRecord, GratuityRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "BonusRecord",
    "GratuityRecord",
]
