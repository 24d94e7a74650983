"""Tests for weighted strategy selection."""

import random
from datetime import timedelta

import pytest

from adaptive_practice.learning_engine.constants import Strategy
from adaptive_practice.learning_engine.contracts import DueEntry, SelectionSnapshot, StrategyWeights
from adaptive_practice.learning_engine.graph import KnowledgeGraph
from adaptive_practice.learning_engine.strategy import SelectorConfig, StrategySelector
from tests.conftest import FIXED_NOW


@pytest.fixture
def graph():
    # 1 -> 2 -> 3, plus independent 4
    return KnowledgeGraph(
        prerequisites={1: [], 2: [1], 3: [2], 4: []},
        p_init={1: 0.3, 2: 0.3, 3: 0.3, 4: 0.3},
    )


def weights(mistake=0, weakness=0, review=0, advance=0):
    return StrategyWeights(mistake=mistake, weakness=weakness, review=review, advance=advance)


def snapshot(**kwargs):
    kwargs.setdefault("weights", StrategyWeights.default())
    return SelectionSnapshot(student_id=1, now=FIXED_NOW, **kwargs)


class TestStrategyWeights:
    def test_default(self):
        w = StrategyWeights.default()
        assert (w.mistake, w.weakness, w.review, w.advance) == (30, 30, 20, 20)

    def test_must_sum_to_100(self):
        with pytest.raises(ValueError):
            weights(mistake=50, weakness=40)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            weights(mistake=110, weakness=-10)


class TestCandidates:
    def test_new_student_only_advances(self, graph):
        selector = StrategySelector(graph)
        candidates = selector.candidates(snapshot())
        assert list(candidates) == [Strategy.SKILL_ADVANCE]
        assert candidates[Strategy.SKILL_ADVANCE].topic_id == 1

    def test_mistake_uses_top_wrong_topic_and_item(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(
            mastery={1: 0.4, 4: 0.5},
            wrong_topics=[(4, 3), (1, 1)],
            top_wrong_item_by_topic={4: 41, 1: 12},
        )
        candidate = selector.mistake_candidate(snap)
        assert candidate.topic_id == 4
        assert candidate.item_id == 41

    def test_drill_topic_overrides_top_wrong(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(wrong_topics=[(4, 3), (1, 1)], drill_topic_id=1)
        assert selector.mistake_candidate(snap).topic_id == 1

    def test_drill_topic_without_mistakes_ignored(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(wrong_topics=[(4, 3)], drill_topic_id=2)
        assert selector.mistake_candidate(snap).topic_id == 4

    def test_review_picks_earliest_due(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(
            due=[
                DueEntry(item_id=22, topic_id=2, due_at=FIXED_NOW - timedelta(hours=1)),
                DueEntry(item_id=11, topic_id=1, due_at=FIXED_NOW - timedelta(days=2)),
                DueEntry(item_id=31, topic_id=3, due_at=FIXED_NOW + timedelta(hours=1)),
            ]
        )
        candidate = selector.review_candidate(snap)
        assert (candidate.topic_id, candidate.item_id) == (1, 11)

    def test_review_ignores_future_entries(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(due=[DueEntry(item_id=31, topic_id=3, due_at=FIXED_NOW + timedelta(minutes=1))])
        assert selector.review_candidate(snap) is None

    def test_weakness_walks_to_prerequisite(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(mastery={1: 0.5, 2: 0.55, 3: 0.1, 4: 0.9})
        candidate = selector.weakness_candidate(snap)
        assert candidate.topic_id == 1
        assert "topic 3" in candidate.reason

    def test_weakness_skips_mastered_topics(self, graph):
        selector = StrategySelector(graph)
        assert selector.weakness_candidate(snapshot(mastery={1: 0.96, 4: 0.99})) is None

    def test_advance_follows_topological_order(self, graph):
        selector = StrategySelector(graph)
        assert selector.advance_candidate(snapshot(mastery={1: 0.9})).topic_id == 2
        assert selector.advance_candidate(snapshot(mastery={1: 0.9, 2: 0.9, 3: 0.9, 4: 0.9})) is None

    def test_custom_thresholds(self, graph):
        selector = StrategySelector(graph, config=SelectorConfig(mastered_threshold=0.8))
        assert selector.weakness_candidate(snapshot(mastery={1: 0.85})) is None


class TestPolicy:
    def test_full_mistake_weight_always_repeats(self, graph):
        selector = StrategySelector(graph, rng=random.Random(0))
        snap = snapshot(
            weights=weights(mistake=100),
            mastery={1: 0.2},
            wrong_topics=[(1, 2)],
            due=[DueEntry(item_id=11, topic_id=1, due_at=FIXED_NOW)],
        )
        for _ in range(50):
            assert selector.select(snap).strategy == Strategy.MISTAKE_REPEAT

    def test_zero_weights_fall_back_to_priority(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(
            weights=weights(mistake=100),
            mastery={1: 0.2},
            due=[DueEntry(item_id=11, topic_id=1, due_at=FIXED_NOW)],
        )
        # No mistakes, so the only weighted strategy is empty
        assert selector.select(snap).strategy == Strategy.REVIEW_DUE

    def test_drill_boosts_mistake_weight(self, graph):
        selector = StrategySelector(graph)
        snap = snapshot(weights=weights(mistake=30, advance=70), wrong_topics=[(1, 1)], drill_topic_id=1)
        candidates = selector.candidates(snap)
        effective = selector.effective_weights(snap, candidates)
        assert effective[Strategy.MISTAKE_REPEAT] == 60.0
        assert effective[Strategy.SKILL_ADVANCE] == 70.0

    def test_rank_puts_drawn_first_then_priority(self, graph):
        selector = StrategySelector(graph, rng=random.Random(1))
        snap = snapshot(
            weights=weights(advance=100),
            mastery={1: 0.2},
            wrong_topics=[(1, 1)],
            due=[DueEntry(item_id=11, topic_id=1, due_at=FIXED_NOW)],
        )
        ranked = [c.strategy for c in selector.rank(snap)]
        assert ranked == [
            Strategy.SKILL_ADVANCE,
            Strategy.MISTAKE_REPEAT,
            Strategy.REVIEW_DUE,
            Strategy.WEAKNESS_REMEDIATION,
        ]

    def test_nothing_to_select(self):
        selector = StrategySelector(KnowledgeGraph(prerequisites={}, p_init={}))
        assert selector.rank(snapshot()) == []
        assert selector.select(snapshot()) is None

    def test_draw_is_proportional(self, graph):
        selector = StrategySelector(graph, rng=random.Random(42))
        snap = snapshot(weights=weights(mistake=25, advance=75), mastery={1: 0.2}, wrong_topics=[(1, 1)])
        picks = [selector.select(snap).strategy for _ in range(2000)]
        share = picks.count(Strategy.MISTAKE_REPEAT) / len(picks)
        assert 0.2 < share < 0.3

    def test_seeded_rng_is_reproducible(self, graph):
        snap = snapshot(mastery={1: 0.2}, wrong_topics=[(1, 1)])
        runs_a = StrategySelector(graph, rng=random.Random(3))
        runs_b = StrategySelector(graph, rng=random.Random(3))
        assert [runs_a.select(snap).strategy for _ in range(20)] == [runs_b.select(snap).strategy for _ in range(20)]
