"""Health check endpoints.

``/health`` also reports whether each table carries its status-scoped unique
index, since one-active-record-per-key depends on it.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from statutory_payroll.api.dependencies import Db

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    constraints: dict[str, bool]


async def _constraint_report(request: Request) -> dict[str, bool]:
    lifecycles = (request.app.state.bonus_lifecycle, request.app.state.gratuity_lifecycle)
    return {lc.kind_name: await lc.store.has_active_constraint() for lc in lifecycles}


@router.get("/health", response_model=HealthResponse)
async def health_check(db: Db, request: Request) -> HealthResponse:
    """Database reachability plus the active-record index check."""
    try:
        await db.ping()
        constraints = await _constraint_report(request)
    except SQLAlchemyError:
        return HealthResponse(
            status="degraded",
            timestamp=datetime.now(timezone.utc),
            database="unhealthy",
            constraints={},
        )

    # A missing index still serves traffic, but uniqueness is unguarded
    return HealthResponse(
        status="healthy" if all(constraints.values()) else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy",
        constraints=constraints,
    )


@router.get("/ready")
async def readiness_check(db: Db):
    """Ready once the database answers."""
    try:
        await db.ping()
    except SQLAlchemyError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
