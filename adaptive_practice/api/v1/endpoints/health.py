"""Health and readiness endpoints."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from adaptive_practice.api.deps import get_db
from adaptive_practice.core.app_exceptions import StorageError
from adaptive_practice.core.errors import get_request_id

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""

    status: Literal["ok", "down"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: Literal["ok", "down"]
    checks: dict[str, ReadinessCheck]
    request_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
def health_check() -> HealthResponse:
    """Process is alive."""
    return HealthResponse(status="ok")


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness check")
def readiness_check(request: Request, db: Annotated[Session, Depends(get_db)]) -> ReadinessResponse:
    """Database and cache reachability."""
    checks: dict[str, ReadinessCheck] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = ReadinessCheck(status="ok")
    except SQLAlchemyError as e:
        checks["db"] = ReadinessCheck(status="down", message=str(e))

    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        checks["cache"] = ReadinessCheck(status="down", message="Not configured")
    else:
        try:
            cache.get("health:ping")
            checks["cache"] = ReadinessCheck(status="ok")
        except StorageError as e:
            checks["cache"] = ReadinessCheck(status="down", message=e.message)

    overall = "ok" if all(c.status == "ok" for c in checks.values()) else "down"
    return ReadinessResponse(status=overall, checks=checks, request_id=get_request_id(request))
