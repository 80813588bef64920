"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error payload returned for rejected requests."""

    detail: str
    code: str


# ============================================================================
# Bonus schemas
# ============================================================================


class BonusSubmitRequest(BaseModel):
    """Employee facts for a bonus computation."""

    employee_id: UUID
    financial_year: str = Field(min_length=1, max_length=16)
    basic_salary: Decimal
    months_worked: int = 12
    bonus_rate: Decimal | None = None
    branch_id: UUID | None = None


class BonusRecordResponse(BaseModel):
    """Schema for bonus record response."""

    model_config = ConfigDict(from_attributes=True)

    bonus_record_id: UUID
    employee_id: UUID
    branch_id: UUID | None = None
    financial_year: str
    basic_salary: Decimal
    is_eligible: bool
    bonus_rate: Decimal
    calculation_base: Decimal
    months_worked: int
    bonus_amount: Decimal
    status: str
    paid_on: datetime | None = None
    remarks: str | None = None
    created_at: datetime
    updated_at: datetime


class BonusSubmitResponse(BaseModel):
    """Outcome of a bonus submission."""

    record: BonusRecordResponse
    is_new: bool
    changed: bool


class BonusRecordListResponse(BaseModel):
    items: list[BonusRecordResponse]
    total: int


# ============================================================================
# Gratuity schemas
# ============================================================================


class GratuitySubmitRequest(BaseModel):
    """Employee facts for a gratuity computation."""

    employee_id: UUID
    date_of_joining: date
    last_drawn_basic_plus_da: Decimal
    date_of_exit: date | None = None
    reference_date: date | None = None
    remarks: str | None = None


class GratuityRecordResponse(BaseModel):
    """Schema for gratuity record response."""

    model_config = ConfigDict(from_attributes=True)

    gratuity_record_id: UUID
    employee_id: UUID
    date_of_joining: date
    date_of_exit: date | None = None
    years_of_service: Decimal
    is_eligible: bool
    last_drawn_basic_plus_da: Decimal
    gratuity_amount: Decimal
    capped_amount: Decimal
    status: str
    paid_on: datetime | None = None
    remarks: str | None = None
    created_at: datetime
    updated_at: datetime


class GratuitySubmitResponse(BaseModel):
    """Outcome of a gratuity submission."""

    record: GratuityRecordResponse
    is_new: bool
    changed: bool


class GratuityRecordListResponse(BaseModel):
    items: list[GratuityRecordResponse]
    total: int


# ============================================================================
# Lifecycle schemas
# ============================================================================


class PayRequest(BaseModel):
    """Request to mark a record paid."""

    paid_on: datetime | None = None


class SupersedeRequest(BaseModel):
    """Request to supersede a record."""

    reason: str | None = Field(default=None, max_length=1000)
