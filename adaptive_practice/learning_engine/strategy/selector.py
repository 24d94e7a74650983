"""
Strategy selector - blends four strategies into one ranked candidate list.

Strategies (at most one candidate each):
- Mistake-Repeat: most-missed topic, or the drill topic while drill mode is on
- Review-Due: earliest review with due_at <= now
- Weakness-Remediation: weakest attempted, unmastered topic, walked down to
  its weakest unmet prerequisite
- Skill-Advance: first unattempted topic in topological order

Policy:
1. Weight each non-empty strategy by the student's configured weight
   (mistake weight boosted while drilling that topic)
2. Draw one strategy proportionally from an injectable ``random.Random``
3. If every remaining weight is zero, fall back to the fixed priority order

Operates on a read-only ``SelectionSnapshot``; never touches storage.
"""

import logging
import random
from dataclasses import dataclass

from adaptive_practice.learning_engine.config import (
    DRILL_WEIGHT_BOOST,
    MASTERED_THRESHOLD,
    READINESS_THRESHOLD,
)
from adaptive_practice.learning_engine.constants import STRATEGY_PRIORITY, Strategy
from adaptive_practice.learning_engine.contracts import Candidate, SelectionSnapshot
from adaptive_practice.learning_engine.graph.knowledge_graph import KnowledgeGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorConfig:
    readiness_threshold: float = READINESS_THRESHOLD.value
    mastered_threshold: float = MASTERED_THRESHOLD.value
    drill_weight_boost: float = DRILL_WEIGHT_BOOST.value


class StrategySelector:
    def __init__(
        self,
        graph: KnowledgeGraph,
        config: SelectorConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.graph = graph
        self.config = config or SelectorConfig()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Per-strategy candidates
    # ------------------------------------------------------------------

    def mistake_candidate(self, snapshot: SelectionSnapshot) -> Candidate | None:
        if not snapshot.wrong_topics:
            return None
        counts = dict(snapshot.wrong_topics)
        drill_topic = snapshot.drill_topic_id
        if drill_topic is not None and counts.get(drill_topic, 0) > 0:
            topic_id = drill_topic
            reason = f"drill mode, missed {counts[topic_id]} times"
        else:
            topic_id = snapshot.wrong_topics[0][0]
            reason = f"missed {counts[topic_id]} times"
        return Candidate(
            strategy=Strategy.MISTAKE_REPEAT,
            topic_id=topic_id,
            item_id=snapshot.top_wrong_item_by_topic.get(topic_id),
            reason=reason,
        )

    def review_candidate(self, snapshot: SelectionSnapshot) -> Candidate | None:
        due = [entry for entry in snapshot.due if entry.due_at <= snapshot.now]
        if not due:
            return None
        entry = min(due, key=lambda e: (e.due_at, e.item_id))
        return Candidate(
            strategy=Strategy.REVIEW_DUE,
            topic_id=entry.topic_id,
            item_id=entry.item_id,
            reason=f"due since {entry.due_at.isoformat()}",
        )

    def weakness_candidate(self, snapshot: SelectionSnapshot) -> Candidate | None:
        weak = [
            (p, topic_id)
            for topic_id, p in snapshot.mastery.items()
            if p < self.config.mastered_threshold
        ]
        if not weak:
            return None
        p, weakest = min(weak)
        target = weakest
        if weakest in self.graph:
            target = self.graph.remediation_target(weakest, snapshot.mastery, self.config.readiness_threshold)
        if target == weakest:
            reason = f"lowest mastery {p:.2f}"
        else:
            reason = f"prerequisite of topic {weakest} (mastery {p:.2f})"
        return Candidate(strategy=Strategy.WEAKNESS_REMEDIATION, topic_id=target, reason=reason)

    def advance_candidate(self, snapshot: SelectionSnapshot) -> Candidate | None:
        topic_id = self.graph.first_unattempted(snapshot.mastery.keys())
        if topic_id is None:
            return None
        return Candidate(strategy=Strategy.SKILL_ADVANCE, topic_id=topic_id, reason="next new topic")

    def candidates(self, snapshot: SelectionSnapshot) -> dict[Strategy, Candidate]:
        """Non-empty candidates keyed by strategy, in priority order."""
        builders = {
            Strategy.MISTAKE_REPEAT: self.mistake_candidate,
            Strategy.REVIEW_DUE: self.review_candidate,
            Strategy.WEAKNESS_REMEDIATION: self.weakness_candidate,
            Strategy.SKILL_ADVANCE: self.advance_candidate,
        }
        found = {}
        for strategy in STRATEGY_PRIORITY:
            candidate = builders[strategy](snapshot)
            if candidate is not None:
                found[strategy] = candidate
        return found

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def effective_weights(
        self, snapshot: SelectionSnapshot, candidates: dict[Strategy, Candidate]
    ) -> dict[Strategy, float]:
        """Weights of the non-empty strategies, before normalisation."""
        weights = {}
        for strategy, candidate in candidates.items():
            weight = float(snapshot.weights.for_strategy(strategy))
            if strategy == Strategy.MISTAKE_REPEAT and candidate.topic_id == snapshot.drill_topic_id:
                weight *= self.config.drill_weight_boost
            weights[strategy] = weight
        return weights

    def _draw(self, weights: dict[Strategy, float]) -> Strategy:
        total = sum(weights.values())
        ordered = [s for s in STRATEGY_PRIORITY if s in weights]
        if total <= 0:
            return ordered[0]

        threshold = self.rng.random() * total
        cumulative = 0.0
        for strategy in ordered:
            cumulative += weights[strategy]
            if threshold < cumulative:
                return strategy
        # Float round-off: last strategy with a positive weight
        return [s for s in ordered if weights[s] > 0][-1]

    def rank(self, snapshot: SelectionSnapshot) -> list[Candidate]:
        """
        Drawn candidate first, then the other non-empty candidates in priority order.

        Empty list means no local candidate.
        """
        candidates = self.candidates(snapshot)
        if not candidates:
            return []

        weights = self.effective_weights(snapshot, candidates)
        chosen = self._draw(weights)

        ranked = [candidates[chosen]] + [c for s, c in candidates.items() if s != chosen]
        logger.debug(
            "strategy_selected",
            extra={
                "event": "strategy_selected",
                "student_id": snapshot.student_id,
                "strategy": chosen.value,
                "weights": {s.value: w for s, w in weights.items()},
                "candidates": [c.to_dict() for c in ranked],
            },
        )
        return ranked

    def select(self, snapshot: SelectionSnapshot) -> Candidate | None:
        ranked = self.rank(snapshot)
        return ranked[0] if ranked else None
