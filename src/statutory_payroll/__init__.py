"""Statutory payroll record engine: bonus and gratuity under Indian labour law."""

__version__ = "0.1.0"
