"""Practice API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from adaptive_practice.api.deps import get_db, get_orchestrator
from adaptive_practice.learning_engine.contracts import RecordOutcome, StrategyWeights
from adaptive_practice.learning_engine.orchestrator import PracticeOrchestrator
from adaptive_practice.learning_engine.preferences import get_weights, set_weights
from adaptive_practice.learning_engine.reporting import (
    ScorePrediction,
    TopicMastery,
    mastery_overview,
    predict_score,
)
from adaptive_practice.schemas.practice import NextItemResponse, SubmitRequest

logger = logging.getLogger(__name__)

router = APIRouter()

StudentId = Annotated[int, Path(gt=0)]


# ============================================================================
# GET /v1/practice/next
# ============================================================================


@router.get("/next", response_model=NextItemResponse)
def get_next_item(
    orchestrator: Annotated[PracticeOrchestrator, Depends(get_orchestrator)],
    student_id: int = Query(gt=0),
):
    """
    Next item for the student.

    When nothing can be served the response is ``{"error": true, "retryable": true, "message": ...}``
    with status 200: exhaustion is an expected state, not a failure.
    """
    return NextItemResponse.from_result(orchestrator.select_next(student_id))


# ============================================================================
# POST /v1/practice/submit
# ============================================================================


@router.post("/submit", response_model=RecordOutcome)
def submit_answer(
    body: SubmitRequest,
    orchestrator: Annotated[PracticeOrchestrator, Depends(get_orchestrator)],
):
    """Record an answer. Per-step status is returned; skipped steps are not an HTTP error."""
    return orchestrator.record(
        student_id=body.student_id,
        item_id=body.item_id,
        correct=body.correct,
        duration_ms=body.duration_ms,
        topic_id=body.topic_id,
    )


# ============================================================================
# Reporting
# ============================================================================


@router.get("/mastery/{student_id}", response_model=list[TopicMastery])
def get_mastery(student_id: StudentId, db: Annotated[Session, Depends(get_db)]):
    return mastery_overview(db, student_id)


@router.get("/prediction/{student_id}", response_model=ScorePrediction)
def get_prediction(student_id: StudentId, db: Annotated[Session, Depends(get_db)]):
    return predict_score(db, student_id)


# ============================================================================
# Strategy weights
# ============================================================================


@router.get("/weights/{student_id}", response_model=StrategyWeights)
def read_weights(student_id: StudentId, db: Annotated[Session, Depends(get_db)]):
    return get_weights(db, student_id)


@router.put("/weights/{student_id}", response_model=StrategyWeights)
def update_weights(
    student_id: StudentId,
    weights: StrategyWeights,
    db: Annotated[Session, Depends(get_db)],
):
    """Replace the student's weights. Four non-negative integers that must sum to 100."""
    saved = set_weights(db, student_id, weights)
    logger.info(
        "strategy_weights_updated",
        extra={"event": "strategy_weights_updated", "student_id": student_id, **saved.model_dump()},
    )
    return saved
