"""End-to-end tests for select_next and record."""

import random
import threading
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from adaptive_practice.core.app_exceptions import UpstreamTimeout, ValidationError
from adaptive_practice.integrations.pool import ItemPool, pool_key
from adaptive_practice.learning_engine.bkt.core import update_mastery
from adaptive_practice.learning_engine.bkt.service import get_student_mastery
from adaptive_practice.learning_engine.constants import (
    EXHAUSTED_MESSAGE,
    Difficulty,
    RecordStep,
    SelectionSource,
)
from adaptive_practice.learning_engine.contracts import GeneratedItem, NoCandidate, Selection, StrategyWeights
from adaptive_practice.learning_engine.drill import DrillFlag
from adaptive_practice.learning_engine.mistakes import MistakeLedger
from adaptive_practice.learning_engine.orchestrator import PracticeOrchestrator, difficulty_tier, last_wrong_summary
from adaptive_practice.learning_engine.preferences import set_weights
from adaptive_practice.learning_engine.srs import service as srs_service
from adaptive_practice.models.event import ExerciseEvent
from adaptive_practice.models.item import Item, ItemSource
from adaptive_practice.models.mastery import MasteryState
from adaptive_practice.models.review import ReviewSchedule
from tests.conftest import FIXED_NOW
from tests.helpers.seed import DEFAULT_PARAMS, create_item, create_review, create_topic, seed_curriculum


class StubGenerator:
    """Content generator double that records the contexts it was asked for."""

    def __init__(self, item=None, error=None, block: threading.Event | None = None):
        self.item = item or GeneratedItem(
            stem="Solve 2x + 3 = 7",
            options=["A. 1", "B. 2", "C. 3", "D. 4"],
            correct_answer="B",
            rationale="Subtract 3, divide by 2.",
        )
        self.error = error
        self.block = block
        self.contexts = []

    def generate(self, context):
        self.contexts.append(context)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return self.item

    def close(self):
        pass


@pytest.fixture
def make_orchestrator(session_factory, cache, clock, test_settings):
    built = []

    def _make(**kwargs):
        kwargs.setdefault("rng", random.Random(7))
        orch = PracticeOrchestrator(
            session_factory=session_factory,
            cache=cache,
            clock=clock,
            config=test_settings,
            sleep=lambda _: None,
            **kwargs,
        )
        built.append(orch)
        return orch

    yield _make
    for orch in built:
        orch.close()


def row_count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def raise_operational_error(*args, **kwargs):
    raise OperationalError("SELECT topics", {}, Exception("database is down"))


class TestHelpers:
    @pytest.mark.parametrize(
        "mastery,tier",
        [(0.0, Difficulty.EASY), (0.39, Difficulty.EASY), (0.4, Difficulty.MEDIUM), (0.69, Difficulty.MEDIUM), (0.7, Difficulty.HARD)],
    )
    def test_difficulty_tier(self, mastery, tier):
        assert difficulty_tier(mastery) == tier

    def test_last_wrong_summary(self):
        assert last_wrong_summary(0) == "No recent mistakes on this topic"
        assert last_wrong_summary(3) == "Missed 3 times on this topic"


class TestPracticeLoop:
    def test_new_student_starts_with_first_topic(self, orchestrator, db):
        seed_curriculum(db)

        result = orchestrator.select_next(student_id=1)

        assert isinstance(result, Selection)
        assert result.source == SelectionSource.SKILL_ADVANCE
        assert result.topic_id == 1
        assert result.item.id == 11
        assert result.label == "New skill"

    def test_wrong_answer_updates_every_store(self, orchestrator, db, cache, clock):
        seed_curriculum(db)

        outcome = orchestrator.record(student_id=1, item_id=11, correct=False, duration_ms=20000)

        expected, _ = update_mastery(DEFAULT_PARAMS.p_init, False, DEFAULT_PARAMS)
        assert outcome.complete
        assert outcome.quality == 1
        assert outcome.p_mastery == pytest.approx(expected)
        assert outcome.p_mastery == pytest.approx(0.14576, abs=1e-4)
        assert get_student_mastery(db, 1) == {1: pytest.approx(expected)}

        assert MistakeLedger(cache).wrong_count(1, 1) == 1
        assert MistakeLedger(cache).top_wrong(1, 1, kind="item") == [(11, 1)]
        assert DrillFlag(cache).current(1) == 1

        entry = srs_service.get_entry(db, 1, 11)
        assert entry.repetition_count == 0
        assert entry.due_at == clock.now + timedelta(minutes=10)

        event = db.execute(select(ExerciseEvent)).scalars().one()
        assert (event.student_id, event.item_id, event.topic_id, event.correct) == (1, 11, 1, False)
        assert event.duration_ms == 20000

    def test_mistake_heavy_weights_repeat_the_missed_topic(self, orchestrator, db):
        seed_curriculum(db)
        orchestrator.record(student_id=1, item_id=11, correct=False)
        set_weights(db, 1, StrategyWeights(mistake=100, weakness=0, review=0, advance=0))

        result = orchestrator.select_next(student_id=1)

        assert result.source == SelectionSource.MISTAKE_REPEAT
        assert result.topic_id == 1
        assert result.item.id == 11

    def test_correct_answer_clears_drill_for_its_topic(self, orchestrator, db, cache):
        seed_curriculum(db)
        orchestrator.record(student_id=1, item_id=11, correct=False)

        outcome = orchestrator.record(student_id=1, item_id=12, correct=True, duration_ms=5000)

        assert outcome.quality == 5
        assert DrillFlag(cache).current(1) is None
        # Counts never go down
        assert MistakeLedger(cache).wrong_count(1, 1) == 1

    def test_correct_answer_on_other_topic_keeps_drill(self, orchestrator, db, cache):
        seed_curriculum(db)
        orchestrator.record(student_id=1, item_id=11, correct=False)
        orchestrator.record(student_id=1, item_id=41, correct=True)
        assert DrillFlag(cache).current(1) == 1

    def test_drill_expires_with_window(self, orchestrator, db, cache):
        seed_curriculum(db)
        orchestrator.record(student_id=1, item_id=11, correct=False)
        cache.advance(601)
        assert DrillFlag(cache).current(1) is None

    def test_review_due_serves_the_scheduled_item(self, orchestrator, db):
        seed_curriculum(db)
        create_review(db, 1, item_id=22, topic_id=2, due_at=FIXED_NOW - timedelta(hours=1))
        set_weights(db, 1, StrategyWeights(mistake=0, weakness=0, review=100, advance=0))

        result = orchestrator.select_next(student_id=1)

        assert result.source == SelectionSource.REVIEW_DUE
        assert result.item.id == 22

    def test_least_practised_item_is_served(self, orchestrator, db):
        seed_curriculum(db)
        set_weights(db, 1, StrategyWeights(mistake=0, weakness=100, review=0, advance=0))
        orchestrator.record(student_id=1, item_id=11, correct=True)
        orchestrator.record(student_id=1, item_id=11, correct=True)

        result = orchestrator.select_next(student_id=1)

        assert result.source == SelectionSource.WEAKNESS_REMEDIATION
        assert result.item.id == 12

    def test_select_next_has_no_side_effects(self, orchestrator, db, cache):
        seed_curriculum(db)
        orchestrator.record(student_id=1, item_id=11, correct=False)
        before_cache = cache.dump()
        before_rows = {model: row_count(db, model) for model in (MasteryState, ReviewSchedule, ExerciseEvent, Item)}

        for _ in range(5):
            orchestrator.select_next(student_id=1)

        db.expire_all()
        assert cache.dump() == before_cache
        assert {model: row_count(db, model) for model in before_rows} == before_rows


class TestRecordValidation:
    def test_unknown_item(self, orchestrator, db, cache):
        seed_curriculum(db)
        with pytest.raises(ValidationError):
            orchestrator.record(student_id=1, item_id=999, correct=True)
        assert row_count(db, ExerciseEvent) == 0
        assert cache.keys() == []

    def test_unknown_topic_override(self, orchestrator, db):
        seed_curriculum(db)
        with pytest.raises(ValidationError):
            orchestrator.record(student_id=1, item_id=11, correct=True, topic_id=77)
        assert row_count(db, MasteryState) == 0

    def test_item_without_topic_needs_explicit_topic(self, orchestrator, db):
        seed_curriculum(db)
        create_item(db, None, item_id=500, source=ItemSource.POOL)
        with pytest.raises(ValidationError):
            orchestrator.record(student_id=1, item_id=500, correct=True)

        outcome = orchestrator.record(student_id=1, item_id=500, correct=True, topic_id=4)
        assert outcome.topic_id == 4
        assert outcome.complete

    def test_out_of_range_duration_is_ignored(self, orchestrator, db):
        seed_curriculum(db)
        outcome = orchestrator.record(student_id=1, item_id=11, correct=True, duration_ms=-5)
        assert outcome.quality == 4
        event = db.execute(select(ExerciseEvent)).scalars().one()
        assert event.duration_ms is None


class TestRecordResilience:
    def test_failing_step_is_skipped_and_others_run(self, orchestrator, db, cache):
        seed_curriculum(db)
        cache.fail_ops.add("zincrby")

        outcome = orchestrator.record(student_id=1, item_id=11, correct=False)

        assert not outcome.complete
        assert outcome.steps[RecordStep.LEDGER].status == "skipped"
        assert outcome.steps[RecordStep.LEDGER].attempts == 3
        for step in (RecordStep.MASTERY, RecordStep.DRILL, RecordStep.REVIEW, RecordStep.EVENT):
            assert outcome.steps[step].status == "ok"
        assert DrillFlag(cache).current(1) == 1
        assert row_count(db, ExerciseEvent) == 1
        assert srs_service.get_entry(db, 1, 11) is not None

    def test_transient_failure_is_retried(self, orchestrator, db, cache):
        seed_curriculum(db)
        cache.fail_ops.add("zincrby")
        cache.fail_times["zincrby"] = 1

        outcome = orchestrator.record(student_id=1, item_id=11, correct=False)

        assert outcome.complete
        assert outcome.steps[RecordStep.LEDGER].attempts == 2
        assert MistakeLedger(cache).wrong_count(1, 1) == 1

    def test_drill_retry_does_not_recount_mistake(self, orchestrator, db, cache):
        seed_curriculum(db)
        cache.fail_ops.add("set")
        cache.fail_times["set"] = 1

        outcome = orchestrator.record(student_id=1, item_id=11, correct=False)

        assert outcome.complete
        assert outcome.steps[RecordStep.LEDGER].attempts == 1
        assert outcome.steps[RecordStep.DRILL].attempts == 2
        ledger = MistakeLedger(cache)
        assert ledger.wrong_count(1, 1) == 1
        assert ledger.top_wrong(1, 5, kind="item") == [(11, 1)]
        assert DrillFlag(cache).current(1) == 1

    def test_drill_clear_runs_as_its_own_step(self, orchestrator, db, cache):
        seed_curriculum(db)
        DrillFlag(cache).enter(1, 1)
        cache.fail_ops.add("delete")

        outcome = orchestrator.record(student_id=1, item_id=11, correct=True)

        assert outcome.steps[RecordStep.LEDGER].status == "ok"
        assert outcome.steps[RecordStep.DRILL].status == "skipped"
        assert DrillFlag(cache).current(1) == 1

    def test_cache_outage_still_logs_event(self, orchestrator, db, cache, caplog):
        seed_curriculum(db)
        cache.fail_ops.add("*")

        outcome = orchestrator.record(student_id=1, item_id=11, correct=False)

        assert outcome.steps[RecordStep.EVENT].status == "ok"
        for step in (RecordStep.MASTERY, RecordStep.LEDGER, RecordStep.DRILL, RecordStep.REVIEW):
            assert outcome.steps[step].status == "skipped"
        assert outcome.p_mastery is None
        skipped = [r for r in caplog.records if r.msg.startswith("Skipped record step")]
        assert len(skipped) == 4

    def test_snapshot_degrades_when_cache_is_down(self, orchestrator, db, cache, caplog):
        seed_curriculum(db)
        cache.fail_ops.add("*")

        result = orchestrator.select_next(student_id=1)

        assert isinstance(result, Selection)
        assert result.source == SelectionSource.SKILL_ADVANCE
        assert result.item.id == 11
        assert any(getattr(r, "event", None) == "snapshot_degraded" for r in caplog.records)

    def test_review_due_survives_cache_outage(self, orchestrator, db, cache):
        seed_curriculum(db)
        create_review(db, 1, item_id=22, topic_id=2, due_at=FIXED_NOW - timedelta(hours=1))
        set_weights(db, 1, StrategyWeights(mistake=0, weakness=0, review=100, advance=0))
        cache.fail_ops.add("*")

        result = orchestrator.select_next(student_id=1)

        assert result.source == SelectionSource.REVIEW_DUE
        assert result.item.id == 22

    def test_database_outage_falls_back_to_pool(self, make_orchestrator, db, cache, monkeypatch, caplog):
        seed_curriculum(db)
        pool = ItemPool(cache)
        pool.push("math", [GeneratedItem(stem="What is 3 + 4?")])
        orch = make_orchestrator(pool=pool)
        monkeypatch.setattr(orch, "load_graph", raise_operational_error)

        result = orch.select_next(student_id=1)

        assert result.source == SelectionSource.POOL
        assert result.topic_id is None
        assert any(getattr(r, "event", None) == "database_degraded" for r in caplog.records)

    def test_database_outage_without_pool_is_retryable(self, orchestrator, db, monkeypatch):
        seed_curriculum(db)
        monkeypatch.setattr(orchestrator, "load_graph", raise_operational_error)

        result = orchestrator.select_next(student_id=1)

        assert result == NoCandidate(retryable=True, message=EXHAUSTED_MESSAGE)


class TestFallbacks:
    def test_pool_serves_when_topic_has_no_items(self, make_orchestrator, db, cache):
        create_topic(db, 1, "Linear equations")
        pool = ItemPool(cache)
        pool.push("math", [GeneratedItem(stem="What is 3 + 4?", options=["A. 6", "B. 7"], correct_answer="B")])
        orch = make_orchestrator(pool=pool)

        result = orch.select_next(student_id=1)

        assert result.source == SelectionSource.POOL
        assert result.label == "Question bank"
        assert result.topic_id == 1
        assert result.item.difficulty == 0.5
        assert result.item.source == ItemSource.POOL
        assert pool.size("math") == 0

        # The catalogued item can be answered like any other
        outcome = orch.record(student_id=1, item_id=result.item.id, correct=True)
        assert outcome.complete

    def test_pool_without_topics_leaves_topic_unset(self, make_orchestrator, cache):
        pool = ItemPool(cache)
        pool.push("math", [GeneratedItem(stem="2 + 2?")])
        result = make_orchestrator(pool=pool).select_next(student_id=1)
        assert result.source == SelectionSource.POOL
        assert result.topic_id is None

    def test_corrupt_pool_entries_are_skipped(self, make_orchestrator, db, cache):
        create_topic(db, 1)
        cache.rpush(pool_key("math"), "{not json", GeneratedItem(stem="ok").model_dump_json())
        result = make_orchestrator(pool=ItemPool(cache)).select_next(student_id=1)
        assert result.item.stem == "ok"

    def test_generator_used_when_pool_empty(self, make_orchestrator, db, cache):
        create_topic(db, 1, "Linear equations")
        MistakeLedger(cache).set_common_mistakes(1, 1, "Drops the negative sign")
        generator = StubGenerator()
        orch = make_orchestrator(pool=ItemPool(cache), generator=generator)

        result = orch.select_next(student_id=1)

        assert result.source == SelectionSource.AI_GENERATED
        assert result.item.stem == "Solve 2x + 3 = 7"
        assert result.item.source == ItemSource.AI_GENERATED
        assert result.item.difficulty == 0.3
        context = generator.contexts[0]
        assert context.topic_name == "Linear equations"
        assert context.difficulty == Difficulty.EASY
        assert context.mastery == pytest.approx(0.3)
        assert context.common_mistakes == "Drops the negative sign"
        assert context.days_since_review is None

    def test_generator_timeout_returns_no_candidate(self, make_orchestrator, db, caplog):
        create_topic(db, 1)
        release = threading.Event()
        orch = make_orchestrator(generator=StubGenerator(block=release))
        try:
            result = orch.select_next(student_id=1)
        finally:
            release.set()

        assert isinstance(result, NoCandidate)
        assert result.message == EXHAUSTED_MESSAGE
        assert any(r.msg.startswith("Content generator timed out") for r in caplog.records)

    def test_generator_failure_returns_no_candidate(self, make_orchestrator, db):
        create_topic(db, 1)
        orch = make_orchestrator(generator=StubGenerator(error=UpstreamTimeout("boom")))
        result = orch.select_next(student_id=1)
        assert isinstance(result, NoCandidate)
        assert result.retryable

    def test_nothing_configured_is_exhausted(self, orchestrator):
        result = orchestrator.select_next(student_id=1)
        assert result == NoCandidate(retryable=True, message=EXHAUSTED_MESSAGE)

    def test_mastered_curriculum_falls_through(self, make_orchestrator, db):
        create_topic(db, 1)
        db.add(MasteryState(student_id=1, topic_id=1, p_mastery=0.99, n_attempts=20))
        db.commit()
        generator = StubGenerator()
        result = make_orchestrator(generator=generator).select_next(student_id=1)
        assert result.source == SelectionSource.AI_GENERATED
        assert generator.contexts[0].difficulty == Difficulty.HARD
