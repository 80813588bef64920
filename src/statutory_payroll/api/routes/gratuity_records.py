"""Gratuity record API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, HTTPException, Path, Query, Response, status

from statutory_payroll.api.dependencies import Gratuities
from statutory_payroll.api.schemas import (
    ErrorResponse,
    GratuityRecordListResponse,
    GratuityRecordResponse,
    GratuitySubmitRequest,
    GratuitySubmitResponse,
    PayRequest,
    SupersedeRequest,
)
from statutory_payroll.services.lifecycle import GratuityFacts

router = APIRouter(tags=["gratuity-records"])


@router.post(
    "/gratuity-records",
    response_model=GratuitySubmitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_gratuity(
    gratuities: Gratuities,
    payload: GratuitySubmitRequest,
    response: Response,
) -> GratuitySubmitResponse:
    """Compute and store the active gratuity record for an employee."""
    result = await gratuities.submit(
        GratuityFacts(
            employee_id=payload.employee_id,
            date_of_joining=payload.date_of_joining,
            last_drawn_basic_plus_da=payload.last_drawn_basic_plus_da,
            date_of_exit=payload.date_of_exit,
            reference_date=payload.reference_date,
            remarks=payload.remarks,
        )
    )
    if not result.is_new:
        response.status_code = status.HTTP_200_OK
    return GratuitySubmitResponse(
        record=GratuityRecordResponse.model_validate(result.record),
        is_new=result.is_new,
        changed=result.changed,
    )


@router.get(
    "/gratuity-records/active",
    response_model=GratuityRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_active_gratuity(
    gratuities: Gratuities,
    employee_id: Annotated[UUID, Query()],
) -> GratuityRecordResponse:
    record = await gratuities.find_active({"employee_id": employee_id})
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active gratuity record for {employee_id}",
        )
    return GratuityRecordResponse.model_validate(record)


@router.get(
    "/gratuity-records/{record_id}",
    response_model=GratuityRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_gratuity(
    gratuities: Gratuities,
    record_id: Annotated[UUID, Path()],
) -> GratuityRecordResponse:
    return GratuityRecordResponse.model_validate(await gratuities.get(record_id))


@router.post(
    "/gratuity-records/{record_id}/pay",
    response_model=GratuityRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def pay_gratuity(
    gratuities: Gratuities,
    record_id: Annotated[UUID, Path()],
    payload: Annotated[PayRequest | None, Body()] = None,
) -> GratuityRecordResponse:
    """Mark an eligible gratuity record paid."""
    paid_on = payload.paid_on if payload else None
    return GratuityRecordResponse.model_validate(await gratuities.mark_paid(record_id, paid_on))


@router.post(
    "/gratuity-records/{record_id}/supersede",
    response_model=GratuityRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def supersede_gratuity(
    gratuities: Gratuities,
    record_id: Annotated[UUID, Path()],
    payload: Annotated[SupersedeRequest | None, Body()] = None,
) -> GratuityRecordResponse:
    reason = payload.reason if payload else None
    return GratuityRecordResponse.model_validate(await gratuities.supersede(record_id, reason))


@router.get(
    "/employees/{employee_id}/gratuity-records",
    response_model=GratuityRecordListResponse,
)
async def list_employee_gratuities(
    gratuities: Gratuities,
    employee_id: Annotated[UUID, Path()],
) -> GratuityRecordListResponse:
    """List every gratuity record for an employee, superseded ones included."""
    records = await gratuities.history(employee_id)
    return GratuityRecordListResponse(
        items=[GratuityRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )
