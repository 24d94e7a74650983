"""FastAPI dependencies."""

from typing import Generator

from fastapi import Request, status
from sqlalchemy.orm import Session

from adaptive_practice.core.app_exceptions import raise_app_error
from adaptive_practice.learning_engine.orchestrator import PracticeOrchestrator


def get_orchestrator(request: Request) -> PracticeOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise_app_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "ENGINE_NOT_READY",
            "Practice engine is starting up",
        )
    return orchestrator


def get_db(request: Request) -> Generator[Session, None, None]:
    """Database session from the app's session factory."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
