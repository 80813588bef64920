"""HTTP API for statutory payroll records."""

from statutory_payroll.api.app import create_app

__all__ = ["create_app"]
