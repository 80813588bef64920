"""Bonus record API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, HTTPException, Path, Query, Response, status

from statutory_payroll.api.dependencies import Bonuses
from statutory_payroll.api.schemas import (
    BonusRecordListResponse,
    BonusRecordResponse,
    BonusSubmitRequest,
    BonusSubmitResponse,
    ErrorResponse,
    PayRequest,
    SupersedeRequest,
)
from statutory_payroll.services.lifecycle import BonusFacts

router = APIRouter(tags=["bonus-records"])


@router.post(
    "/bonus-records",
    response_model=BonusSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_bonus(
    bonuses: Bonuses,
    payload: BonusSubmitRequest,
    response: Response,
) -> BonusSubmitResponse:
    """Compute and store the active bonus record for (employee, financial year).

    Returns 201 when a record was created and 200 when an existing active
    record was recomputed (or was already up to date).
    """
    result = await bonuses.submit(
        BonusFacts(
            employee_id=payload.employee_id,
            financial_year=payload.financial_year,
            basic_salary=payload.basic_salary,
            months_worked=payload.months_worked,
            bonus_rate=payload.bonus_rate,
            branch_id=payload.branch_id,
        )
    )
    if not result.is_new:
        response.status_code = status.HTTP_200_OK
    return BonusSubmitResponse(
        record=BonusRecordResponse.model_validate(result.record),
        is_new=result.is_new,
        changed=result.changed,
    )


@router.get(
    "/bonus-records/active",
    response_model=BonusRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_active_bonus(
    bonuses: Bonuses,
    employee_id: Annotated[UUID, Query()],
    financial_year: Annotated[str, Query(min_length=1)],
) -> BonusRecordResponse:
    """Get the active bonus record for an employee and financial year."""
    record = await bonuses.find_active(
        {"employee_id": employee_id, "financial_year": financial_year}
    )
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active bonus record for {employee_id} in {financial_year}",
        )
    return BonusRecordResponse.model_validate(record)


@router.get(
    "/bonus-records/{record_id}",
    response_model=BonusRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_bonus(
    bonuses: Bonuses,
    record_id: Annotated[UUID, Path()],
) -> BonusRecordResponse:
    """Get a bonus record by ID."""
    return BonusRecordResponse.model_validate(await bonuses.get(record_id))


@router.post(
    "/bonus-records/{record_id}/approve",
    response_model=BonusRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_bonus(
    bonuses: Bonuses,
    record_id: Annotated[UUID, Path()],
) -> BonusRecordResponse:
    """Approve a pending bonus record."""
    return BonusRecordResponse.model_validate(await bonuses.approve(record_id))


@router.post(
    "/bonus-records/{record_id}/pay",
    response_model=BonusRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def pay_bonus(
    bonuses: Bonuses,
    record_id: Annotated[UUID, Path()],
    payload: Annotated[PayRequest | None, Body()] = None,
) -> BonusRecordResponse:
    """Mark an approved bonus record paid."""
    paid_on = payload.paid_on if payload else None
    return BonusRecordResponse.model_validate(await bonuses.mark_paid(record_id, paid_on))


@router.post(
    "/bonus-records/{record_id}/supersede",
    response_model=BonusRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def supersede_bonus(
    bonuses: Bonuses,
    record_id: Annotated[UUID, Path()],
    payload: Annotated[SupersedeRequest | None, Body()] = None,
) -> BonusRecordResponse:
    """Supersede a bonus record so a corrected one can be submitted."""
    reason = payload.reason if payload else None
    return BonusRecordResponse.model_validate(await bonuses.supersede(record_id, reason))


@router.get(
    "/employees/{employee_id}/bonus-records",
    response_model=BonusRecordListResponse,
)
async def list_employee_bonuses(
    bonuses: Bonuses,
    employee_id: Annotated[UUID, Path()],
) -> BonusRecordListResponse:
    """List every bonus record for an employee, superseded ones included."""
    records = await bonuses.history(employee_id)
    return BonusRecordListResponse(
        items=[BonusRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )
