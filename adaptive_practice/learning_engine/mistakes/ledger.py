"""
Mistake ledger - wrong-answer frequencies per student, kept in the cache.

Keys:
- ``student:{id}:wrong_freq:topic``  sorted set, topic_id -> wrong count
- ``student:{id}:wrong_freq:item``   sorted set, item_id -> wrong count
- ``student:{id}:common_mistakes``   hash, topic_id -> free-text summary

Counts only ever go up; ``reset`` is the one explicit way back to zero.
"""

import logging
from typing import Literal

from adaptive_practice.cache.base import KeyValueCache

logger = logging.getLogger(__name__)

LedgerKind = Literal["topic", "item"]

NO_MISTAKES_TEXT = "No recorded mistakes yet"


def wrong_freq_key(student_id: int, kind: LedgerKind) -> str:
    return f"student:{student_id}:wrong_freq:{kind}"


def common_mistakes_key(student_id: int) -> str:
    return f"student:{student_id}:common_mistakes"


class MistakeLedger:
    """Per-student wrong-answer counters over an injected cache."""

    def __init__(self, cache: KeyValueCache):
        self.cache = cache

    def record_wrong(self, student_id: int, item_id: int, topic_id: int) -> int:
        """Count one wrong answer against both the item and its topic. Returns the new topic count."""
        self.cache.zincrby(wrong_freq_key(student_id, "item"), str(item_id), 1)
        topic_count = self.cache.zincrby(wrong_freq_key(student_id, "topic"), str(topic_id), 1)
        return int(topic_count)

    def top_wrong(self, student_id: int, k: int, kind: LedgerKind = "topic") -> list[tuple[int, int]]:
        """
        The ``k`` most-missed ids with their counts.

        Highest count first; equal counts by ascending id.
        """
        if k <= 0:
            return []
        return self.all_wrong(student_id, kind)[:k]

    def all_wrong(self, student_id: int, kind: LedgerKind = "topic") -> list[tuple[int, int]]:
        members = self.cache.zmembers_with_scores(wrong_freq_key(student_id, kind))
        counts = [(int(member), int(score)) for member, score in members if score > 0]
        return sorted(counts, key=lambda m: (-m[1], m[0]))

    def wrong_count(self, student_id: int, topic_id: int) -> int:
        score = self.cache.zscore(wrong_freq_key(student_id, "topic"), str(topic_id))
        return int(score) if score is not None else 0

    def common_mistakes(self, student_id: int, topic_id: int) -> str:
        text = self.cache.hget(common_mistakes_key(student_id), str(topic_id))
        return text if text else NO_MISTAKES_TEXT

    def set_common_mistakes(self, student_id: int, topic_id: int, text: str) -> None:
        self.cache.hset(common_mistakes_key(student_id), str(topic_id), text)

    def reset(self, student_id: int) -> None:
        """Administrative reset of every counter and summary for the student."""
        self.cache.delete(wrong_freq_key(student_id, "topic"))
        self.cache.delete(wrong_freq_key(student_id, "item"))
        self.cache.delete(common_mistakes_key(student_id))
        logger.info("mistake_ledger_reset", extra={"event": "mistake_ledger_reset", "student_id": student_id})
