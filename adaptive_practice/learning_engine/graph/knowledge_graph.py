"""
Knowledge Graph - the prerequisite DAG over topics.

Uses networkx for graph operations:
- Cycle detection when the graph is built
- Deterministic topological order (ascending id among ready nodes)
- Walking from a weak topic down to its weakest unmet prerequisite

Edges point FROM a prerequisite TO the topic that depends on it.
"""

import logging
from typing import Iterable

import networkx as nx

from adaptive_practice.core.app_exceptions import ValidationError
from adaptive_practice.models.topic import Topic

logger = logging.getLogger(__name__)


class KnowledgeGraph:
    def __init__(self, prerequisites: dict[int, list[int]], p_init: dict[int, float]):
        """
        Build the graph.

        Args:
            prerequisites: topic_id -> prerequisite topic ids
            p_init: topic_id -> BKT prior, used as the mastery of unattempted topics

        Raises:
            ValidationError: If the prerequisites form a cycle
        """
        self.graph = nx.DiGraph()
        self.p_init = dict(p_init)
        # Prerequisite ids referenced by a topic but with no topic data of their own
        self.missing_prerequisites: dict[int, list[int]] = {}

        for topic_id in sorted(p_init):
            self.graph.add_node(topic_id)

        for topic_id, prereq_ids in prerequisites.items():
            for prereq_id in prereq_ids:
                if prereq_id in self.p_init:
                    self.graph.add_edge(prereq_id, topic_id)
                else:
                    self.missing_prerequisites.setdefault(topic_id, []).append(prereq_id)

        if not nx.is_directed_acyclic_graph(self.graph):
            cycle = nx.find_cycle(self.graph)
            raise ValidationError("Prerequisite graph contains a cycle", details={"cycle": cycle})

        self._order = list(nx.lexicographical_topological_sort(self.graph))

    @classmethod
    def from_topics(cls, topics: Iterable[Topic]) -> "KnowledgeGraph":
        topics = list(topics)
        return cls(
            prerequisites={t.id: t.prerequisite_ids for t in topics},
            p_init={t.id: t.p_init for t in topics},
        )

    def __contains__(self, topic_id: int) -> bool:
        return topic_id in self.p_init

    def __len__(self) -> int:
        return len(self.p_init)

    def topological_order(self) -> list[int]:
        """Every topic, prerequisites first; among ready topics the lowest id comes first."""
        return list(self._order)

    def get_prerequisites(self, topic_id: int) -> list[int]:
        """Immediate prerequisites with topic data, ascending id."""
        if topic_id not in self.graph:
            return []
        return sorted(self.graph.predecessors(topic_id))

    def effective_mastery(self, topic_id: int, mastery: dict[int, float]) -> float:
        """Current mastery, or the topic's prior if never attempted."""
        if topic_id in mastery:
            return mastery[topic_id]
        return self.p_init[topic_id]

    def weakest_unmet_prerequisite(
        self, topic_id: int, mastery: dict[int, float], readiness_threshold: float
    ) -> int | None:
        """
        The lowest-mastery prerequisite below ``readiness_threshold`` (ties by id).

        Prerequisite ids without topic data count as ready; each is logged.
        """
        for missing_id in self.missing_prerequisites.get(topic_id, []):
            logger.warning(
                "prerequisite_data_missing",
                extra={"event": "prerequisite_data_missing", "topic_id": topic_id, "prerequisite_id": missing_id},
            )

        unmet = [
            (self.effective_mastery(prereq_id, mastery), prereq_id)
            for prereq_id in self.get_prerequisites(topic_id)
            if self.effective_mastery(prereq_id, mastery) < readiness_threshold
        ]
        if not unmet:
            return None
        return min(unmet)[1]

    def remediation_target(self, topic_id: int, mastery: dict[int, float], readiness_threshold: float) -> int:
        """
        Walk from ``topic_id`` to its weakest unmet prerequisite until a ready topic is reached.

        Bounded by the number of topics; the graph is acyclic so the walk always ends.
        """
        current = topic_id
        for _ in range(len(self.p_init)):
            prereq = self.weakest_unmet_prerequisite(current, mastery, readiness_threshold)
            if prereq is None:
                break
            current = prereq
        return current

    def first_unattempted(self, attempted: Iterable[int]) -> int | None:
        """First topic in topological order the student has not attempted."""
        seen = set(attempted)
        for topic_id in self._order:
            if topic_id not in seen:
                return topic_id
        return None
