"""Tolerant parsing of item payloads returned by external item services.

Accepted shapes:
- ``{"question": {"question": "stem", "choices": {...}, ...}, "difficulty": "Medium"}``
- a flat item with the same fields at the top level

Field fallbacks:
- stem: ``question`` then ``stem`` (an optional ``paragraph`` is prepended)
- options: ``choices`` letter map, else ``answer_choices`` / ``options`` array
- answer: ``correct_answer`` then ``answer``
- rationale: ``explanation``, ``rationale``, ``analysis``
"""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from adaptive_practice.learning_engine.config import DIFFICULTY_VALUES
from adaptive_practice.learning_engine.contracts import GeneratedItem

logger = logging.getLogger(__name__)

CHOICE_LETTERS = ("A", "B", "C", "D", "E")


def _first_text(*candidates: Any) -> str | None:
    for value in candidates:
        if isinstance(value, str) and value.strip() and value.strip() != "null":
            return value
    return None


def _parse_options(inner: dict[str, Any]) -> list[str]:
    choices = inner.get("choices")
    if isinstance(choices, dict):
        options = [f"{letter}. {choices[letter]}" for letter in CHOICE_LETTERS if choices.get(letter) is not None]
        if options:
            return options

    array = inner.get("answer_choices")
    if not isinstance(array, list):
        array = inner.get("options")
    if not isinstance(array, list):
        return []

    options = []
    for choice in array:
        if isinstance(choice, dict):
            label = choice.get("id")
            content = choice.get("content", choice.get("text"))
            prefix = f"{label}. " if label else ""
            options.append(f"{prefix}{content if content is not None else choice}")
        else:
            options.append(str(choice))
    return options


def _parse_difficulty(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and 0.0 <= value <= 1.0:
        return float(value)
    if isinstance(value, str):
        return DIFFICULTY_VALUES.value.get(value.strip().capitalize())
    return None


def parse_item_payload(payload: Any) -> GeneratedItem | None:
    """Map one raw item to a ``GeneratedItem``. Returns None for unusable items."""
    if not isinstance(payload, dict):
        return None

    inner = payload.get("question")
    if not isinstance(inner, dict):
        inner = payload

    stem = _first_text(inner.get("question"), inner.get("stem"), payload.get("stem"))
    if stem is None:
        logger.warning("item_payload_skipped", extra={"event": "item_payload_skipped", "reason": "no_stem"})
        return None

    paragraph = _first_text(inner.get("paragraph"))
    if paragraph:
        stem = f"{paragraph}\n\n{stem}"

    answer = _first_text(inner.get("correct_answer"), inner.get("answer"), payload.get("correct_answer"))
    rationale = _first_text(inner.get("explanation"), inner.get("rationale"), inner.get("analysis"))
    difficulty = _parse_difficulty(payload.get("difficulty", inner.get("difficulty")))

    try:
        return GeneratedItem(
            stem=stem,
            options=_parse_options(inner),
            correct_answer=answer,
            rationale=rationale,
            difficulty=difficulty,
        )
    except PydanticValidationError as e:
        logger.warning(
            "item_payload_skipped",
            extra={"event": "item_payload_skipped", "reason": "invalid", "error": str(e)},
        )
        return None
