"""
Drill mode - a short-lived "hot topic" marker set after a wrong answer.

Stored as ``student:{id}:drill_mode`` holding the topic id, with a TTL. The
flag always names the topic of the answer that triggered it.
"""

import logging

from adaptive_practice.cache.base import KeyValueCache
from adaptive_practice.learning_engine.config import DRILL_WINDOW_SECONDS

logger = logging.getLogger(__name__)


def drill_key(student_id: int) -> str:
    return f"student:{student_id}:drill_mode"


class DrillFlag:
    def __init__(self, cache: KeyValueCache, window_seconds: int = DRILL_WINDOW_SECONDS.value):
        self.cache = cache
        self.window_seconds = window_seconds

    def enter(self, student_id: int, topic_id: int) -> None:
        self.cache.set(drill_key(student_id), str(topic_id), ttl_seconds=self.window_seconds)

    def current(self, student_id: int) -> int | None:
        value = self.cache.get(drill_key(student_id))
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "drill_flag_corrupt",
                extra={"event": "drill_flag_corrupt", "student_id": student_id, "value": value},
            )
            return None

    def clear_if(self, student_id: int, topic_id: int) -> bool:
        """Clear the flag only when it names ``topic_id``. Returns True if cleared."""
        if self.current(student_id) != topic_id:
            return False
        self.cache.delete(drill_key(student_id))
        return True
