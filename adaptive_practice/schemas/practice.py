"""Pydantic schemas for the Practice API."""

from pydantic import BaseModel, Field

from adaptive_practice.learning_engine.contracts import ItemView, NoCandidate, Selection


class NextItemResponse(BaseModel):
    """Next item, or the retryable exhausted signal (``error=True``)."""

    error: bool = False
    retryable: bool = False
    message: str | None = None
    strategy_code: str | None = None
    strategy: str | None = None
    reason: str | None = None
    item: ItemView | None = None

    @classmethod
    def from_result(cls, result: Selection | NoCandidate) -> "NextItemResponse":
        if isinstance(result, NoCandidate):
            return cls(error=True, retryable=result.retryable, message=result.message)
        return cls(
            strategy_code=result.source.value,
            strategy=result.label,
            reason=result.reason,
            item=result.item,
        )


class SubmitRequest(BaseModel):
    """Answer submission."""

    student_id: int = Field(gt=0)
    item_id: int = Field(gt=0)
    correct: bool
    duration_ms: int | None = Field(default=None, ge=0)
    topic_id: int | None = Field(default=None, gt=0)
