"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from statutory_payroll.database import Database
from statutory_payroll.services.lifecycle import BonusLifecycle, GratuityLifecycle


def get_database(request: Request) -> Database:
    """Database handle owned by the application."""
    return request.app.state.database


def get_bonus_lifecycle(request: Request) -> BonusLifecycle:
    return request.app.state.bonus_lifecycle


def get_gratuity_lifecycle(request: Request) -> GratuityLifecycle:
    return request.app.state.gratuity_lifecycle


# Type aliases for cleaner dependency injection
Db = Annotated[Database, Depends(get_database)]
Bonuses = Annotated[BonusLifecycle, Depends(get_bonus_lifecycle)]
Gratuities = Annotated[GratuityLifecycle, Depends(get_gratuity_lifecycle)]
