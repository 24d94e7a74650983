"""
Practice orchestrator - the two public operations of the engine.

select_next(student):
1. Build a read-only snapshot (weights, mastery, ledger, drill flag, due reviews)
2. Walk the ranked strategy candidates; the first that resolves to an item wins
3. Otherwise pop an item from the supply pool of the weakest topic's category
4. Otherwise ask the content generator (bounded timeout)
5. Otherwise return a retryable NoCandidate

record(student, item, correct, duration):
1. BKT update under a per-(student, topic) lock
2. Mistake ledger counters (wrong answers only)
3. Drill flag: enter on a wrong answer, clear on a right one
4. SM-2 reschedule under a per-(student, item) lock
5. Append the exercise event

Each record step is retried on StorageError and skipped (logged) if it keeps
failing; later steps still run.
"""

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from adaptive_practice.cache.base import KeyValueCache
from adaptive_practice.core.app_exceptions import StorageError, UpstreamTimeout, ValidationError
from adaptive_practice.core.config import Settings, settings
from adaptive_practice.core.redis_lock import key_lock
from adaptive_practice.db.session import session_scope
from adaptive_practice.db.types import utcnow
from adaptive_practice.integrations.content_generator import ContentGenerator
from adaptive_practice.integrations.pool import ItemPool, PoolRefiller
from adaptive_practice.learning_engine.bkt.service import get_student_mastery, get_topic, update_from_attempt
from adaptive_practice.learning_engine.config import (
    DIFFICULTY_EASY_BELOW,
    DIFFICULTY_HARD_FROM,
    DIFFICULTY_VALUES,
)
from adaptive_practice.learning_engine.constants import (
    EXHAUSTED_MESSAGE,
    Difficulty,
    RecordStep,
    SelectionSource,
)
from adaptive_practice.learning_engine.contracts import (
    Candidate,
    DueEntry,
    GeneratedItem,
    GenerationContext,
    ItemView,
    NoCandidate,
    RecordOutcome,
    Selection,
    SelectionSnapshot,
    StepResult,
)
from adaptive_practice.learning_engine.drill import DrillFlag
from adaptive_practice.learning_engine.graph.knowledge_graph import KnowledgeGraph
from adaptive_practice.learning_engine.mistakes.ledger import NO_MISTAKES_TEXT, MistakeLedger
from adaptive_practice.learning_engine.preferences import get_weights
from adaptive_practice.learning_engine.retry import run_with_retry
from adaptive_practice.learning_engine.srs import service as srs_service
from adaptive_practice.learning_engine.srs.quality_mapper import (
    DEFAULT_POLICY,
    QualityPolicy,
    explain_quality,
    map_attempt_to_quality,
    validate_duration,
)
from adaptive_practice.learning_engine.strategy.selector import SelectorConfig, StrategySelector
from adaptive_practice.models.event import ExerciseEvent
from adaptive_practice.models.item import Item, ItemSource
from adaptive_practice.models.topic import Topic

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Due reviews loaded into a snapshot; only the earliest is ever used
SNAPSHOT_DUE_LIMIT = 20


def difficulty_tier(mastery: float) -> Difficulty:
    """Easy below 0.4, Hard from 0.7, Medium in between."""
    if mastery < DIFFICULTY_EASY_BELOW.value:
        return Difficulty.EASY
    if mastery < DIFFICULTY_HARD_FROM.value:
        return Difficulty.MEDIUM
    return Difficulty.HARD


def last_wrong_summary(wrong_count: int) -> str:
    if wrong_count <= 0:
        return "No recent mistakes on this topic"
    return f"Missed {wrong_count} times on this topic"


class PracticeOrchestrator:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        cache: KeyValueCache,
        generator: ContentGenerator | None = None,
        pool: ItemPool | None = None,
        refiller: PoolRefiller | None = None,
        selector_config: SelectorConfig | None = None,
        quality_policy: QualityPolicy = DEFAULT_POLICY,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
        config: Settings = settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.generator = generator
        self.pool = pool
        self.refiller = refiller
        self.selector_config = selector_config or SelectorConfig()
        self.quality_policy = quality_policy
        self.rng = rng or random.Random()
        self.clock = clock
        self.config = config
        self.sleep = sleep

        self.ledger = MistakeLedger(cache)
        self.drill = DrillFlag(cache)
        self._generator_executor = (
            ThreadPoolExecutor(max_workers=2, thread_name_prefix="content-gen") if generator is not None else None
        )

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def load_graph(self, db: Session) -> KnowledgeGraph:
        topics = db.execute(select(Topic).order_by(Topic.id)).scalars().all()
        return KnowledgeGraph.from_topics(topics)

    def build_snapshot(
        self,
        db: Session,
        student_id: int,
        now: datetime,
        mastery: dict[int, float] | None = None,
    ) -> SelectionSnapshot:
        """
        Read everything the selector needs. Reads only.

        When the cache is down the snapshot carries no ledger counts and no
        drill flag; the database-backed strategies still see their inputs.
        """
        if mastery is None:
            mastery = get_student_mastery(db, student_id)

        try:
            wrong_items = self.ledger.all_wrong(student_id, kind="item")
            wrong_topics = self.ledger.all_wrong(student_id, kind="topic")
            drill_topic_id = self.drill.current(student_id)
        except StorageError as e:
            logger.warning(
                f"Ledger and drill flag unavailable for student {student_id}: {e.message}",
                extra={"event": "snapshot_degraded", "student_id": student_id},
            )
            wrong_items, wrong_topics, drill_topic_id = [], [], None

        top_wrong_item_by_topic: dict[int, int] = {}
        if wrong_items:
            item_topics = dict(
                db.execute(
                    select(Item.id, Item.topic_id).where(Item.id.in_([item_id for item_id, _ in wrong_items]))
                ).all()
            )
            # wrong_items is ordered by count desc then id, so the first hit per topic wins
            for item_id, _ in wrong_items:
                topic_id = item_topics.get(item_id)
                if topic_id is not None:
                    top_wrong_item_by_topic.setdefault(topic_id, item_id)

        due = [
            DueEntry(item_id=entry.item_id, topic_id=entry.topic_id, due_at=entry.due_at)
            for entry in srs_service.due_items(db, student_id, now, limit=SNAPSHOT_DUE_LIMIT)
        ]

        return SelectionSnapshot(
            student_id=student_id,
            weights=get_weights(db, student_id),
            now=now,
            mastery=mastery,
            wrong_topics=wrong_topics,
            top_wrong_item_by_topic=top_wrong_item_by_topic,
            drill_topic_id=drill_topic_id,
            due=due,
        )

    # ------------------------------------------------------------------
    # Candidate resolution
    # ------------------------------------------------------------------

    def least_practised_item(self, db: Session, student_id: int, topic_id: int) -> Item | None:
        """Item of the topic the student has answered least often (ties by id)."""
        attempts = (
            select(ExerciseEvent.item_id, func.count().label("n"))
            .where(ExerciseEvent.student_id == student_id)
            .group_by(ExerciseEvent.item_id)
            .subquery()
        )
        stmt = (
            select(Item)
            .outerjoin(attempts, attempts.c.item_id == Item.id)
            .where(Item.topic_id == topic_id)
            .order_by(func.coalesce(attempts.c.n, 0), Item.id)
            .limit(1)
        )
        return db.execute(stmt).scalars().first()

    def resolve_candidate(self, db: Session, student_id: int, candidate: Candidate) -> Item | None:
        """Named item if it still exists, else the least-practised item of the topic."""
        if candidate.item_id is not None:
            item = db.get(Item, candidate.item_id)
            if item is not None:
                return item
        return self.least_practised_item(db, student_id, candidate.topic_id)

    def weakest_topic(self, graph: KnowledgeGraph, mastery: dict[int, float]) -> int | None:
        """Lowest-mastery attempted topic, or the first topic in order for a new student."""
        attempted = [(p, topic_id) for topic_id, p in mastery.items() if topic_id in graph]
        if attempted:
            return min(attempted)[1]
        return graph.first_unattempted([])

    # ------------------------------------------------------------------
    # select_next
    # ------------------------------------------------------------------

    def select_next(self, student_id: int) -> Selection | NoCandidate:
        """
        Choose the next item for a student.

        Never writes learner state. May consume a pool item and catalogue a
        pooled or generated item. A database outage skips the strategies and
        falls through to the pool.
        """
        now = self.clock()
        context: GenerationContext | None = None
        category = self.config.DEFAULT_CATEGORY
        weakest_id: int | None = None

        try:
            with self.session_factory() as db:
                graph = self.load_graph(db)
                mastery = get_student_mastery(db, student_id)
                snapshot = self.build_snapshot(db, student_id, now, mastery=mastery)

                selector = StrategySelector(graph, self.selector_config, self.rng)
                for candidate in selector.rank(snapshot):
                    item = self.resolve_candidate(db, student_id, candidate)
                    if item is not None:
                        return Selection.build(
                            ItemView.model_validate(item),
                            SelectionSource(candidate.strategy.value),
                            candidate.reason,
                        )
                    logger.info(
                        "candidate_unresolved",
                        extra={"event": "candidate_unresolved", "student_id": student_id, **candidate.to_dict()},
                    )

                weakest_id = self.weakest_topic(graph, mastery)
                if weakest_id is not None:
                    topic = db.get(Topic, weakest_id)
                    category = topic.category
                    context = self._generation_context(db, student_id, topic, mastery, now)
        except SQLAlchemyError as e:
            logger.error(
                f"Database unavailable while selecting for student {student_id}: {type(e).__name__}",
                extra={"event": "database_degraded", "student_id": student_id},
            )
            context, category, weakest_id = None, self.config.DEFAULT_CATEGORY, None

        pooled = self._serve_from_pool(category, weakest_id)
        if pooled is not None:
            return pooled

        if context is not None:
            generated = self._serve_generated(context)
            if generated is not None:
                return generated

        logger.info("selection_exhausted", extra={"event": "selection_exhausted", "student_id": student_id})
        return NoCandidate(retryable=True, message=EXHAUSTED_MESSAGE)

    def _generation_context(
        self,
        db: Session,
        student_id: int,
        topic: Topic,
        mastery: dict[int, float],
        now: datetime,
    ) -> GenerationContext:
        p = mastery.get(topic.id, topic.p_init)
        try:
            common = self.ledger.common_mistakes(student_id, topic.id)
            wrong = self.ledger.wrong_count(student_id, topic.id)
        except StorageError as e:
            logger.warning(
                f"Ledger unavailable for generation context: {e.message}",
                extra={"event": "generation_context_degraded", "student_id": student_id, "topic_id": topic.id},
            )
            common, wrong = NO_MISTAKES_TEXT, 0
        return GenerationContext(
            student_id=student_id,
            topic_id=topic.id,
            topic_name=topic.name,
            category=topic.category,
            mastery=p,
            common_mistakes=common,
            last_wrong_summary=last_wrong_summary(wrong),
            days_since_review=srs_service.days_since_review(db, student_id, topic.id, now),
            difficulty=difficulty_tier(p),
        )

    def _catalogue(self, generated: GeneratedItem, topic_id: int | None, source: str, difficulty: float) -> ItemView:
        with session_scope(self.session_factory) as db:
            item = Item(
                topic_id=topic_id,
                stem=generated.stem,
                options=list(generated.options),
                correct_answer=generated.correct_answer,
                rationale=generated.rationale,
                difficulty=generated.difficulty if generated.difficulty is not None else difficulty,
                source=source,
            )
            db.add(item)
            db.flush()
            view = ItemView.model_validate(item)
        return view

    def _serve_from_pool(self, category: str, topic_id: int | None) -> Selection | None:
        if self.pool is None:
            return None
        try:
            generated = self.pool.pop(category)
            if self.refiller is not None:
                self.refiller.maybe_refill(category)
            if generated is None:
                return None
            view = self._catalogue(generated, topic_id, ItemSource.POOL, DIFFICULTY_VALUES.value["Medium"])
        except StorageError as e:
            logger.warning(
                f"Pool unavailable for {category}: {e.message}",
                extra={"event": "pool_degraded", "category": category},
            )
            return None
        return Selection.build(view, SelectionSource.POOL, f"pool {category}")

    def _serve_generated(self, context: GenerationContext) -> Selection | None:
        if self.generator is None or self._generator_executor is None:
            return None
        timeout = self.config.GENERATOR_TIMEOUT_SECONDS
        future = self._generator_executor.submit(self.generator.generate, context)
        try:
            generated = future.result(timeout=timeout)
        except FuturesTimeout:
            future.cancel()
            logger.warning(
                f"Content generator timed out after {timeout}s",
                extra={"event": "generator_timeout", "topic_id": context.topic_id},
            )
            return None
        except UpstreamTimeout as e:
            logger.warning(
                f"Content generator failed: {e.message}",
                extra={"event": "generator_failed", "topic_id": context.topic_id},
            )
            return None

        try:
            view = self._catalogue(
                generated,
                context.topic_id,
                ItemSource.AI_GENERATED,
                DIFFICULTY_VALUES.value[context.difficulty.value],
            )
        except StorageError as e:
            logger.warning(
                f"Could not catalogue generated item: {e.message}",
                extra={"event": "generated_item_dropped", "topic_id": context.topic_id},
            )
            return None
        return Selection.build(
            view,
            SelectionSource.AI_GENERATED,
            f"{context.difficulty.value} item for {context.topic_name}",
        )

    # ------------------------------------------------------------------
    # record
    # ------------------------------------------------------------------

    def _run_step(self, outcome: RecordOutcome, step: RecordStep, operation: Callable[[], T]) -> T | None:
        try:
            result, attempts = run_with_retry(
                operation,
                attempts=self.config.STORAGE_RETRY_ATTEMPTS,
                backoff_seconds=self.config.STORAGE_RETRY_BACKOFF_SECONDS,
                label=f"record.{step.value}",
                sleep=self.sleep,
            )
        except StorageError as e:
            logger.error(
                f"Skipped record step {step.value} for student {outcome.student_id}: {e.message}",
                extra={
                    "event": "record_step_skipped",
                    "step": step.value,
                    "student_id": outcome.student_id,
                    "item_id": outcome.item_id,
                },
            )
            outcome.steps[step] = StepResult(
                status="skipped", attempts=self.config.STORAGE_RETRY_ATTEMPTS, error=e.message
            )
            return None
        outcome.steps[step] = StepResult(status="ok", attempts=attempts)
        return result

    def _lock(self, key: str):
        return key_lock(
            self.cache,
            key,
            ttl_seconds=self.config.LOCK_TTL_SECONDS,
            wait_seconds=self.config.LOCK_WAIT_SECONDS,
        )

    def record(
        self,
        student_id: int,
        item_id: int,
        correct: bool,
        duration_ms: int | None = None,
        topic_id: int | None = None,
    ) -> RecordOutcome:
        """
        Record one answer.

        Raises:
            ValidationError: Unknown item or topic (before any step runs)
        """
        try:
            with self.session_factory() as db:
                item = db.get(Item, item_id)
                if item is None:
                    raise ValidationError(f"Unknown item {item_id}", details={"item_id": item_id})
                topic_id = topic_id if topic_id is not None else item.topic_id
                if topic_id is None:
                    raise ValidationError(f"Item {item_id} has no topic", details={"item_id": item_id})
                get_topic(db, topic_id)
        except SQLAlchemyError as e:
            raise StorageError("database unavailable") from e

        duration_ms, warnings = validate_duration(duration_ms)
        for warning in warnings:
            logger.warning(warning, extra={"event": "duration_ignored", "student_id": student_id})
        quality = map_attempt_to_quality(correct, duration_ms, self.quality_policy)
        now = self.clock()

        outcome = RecordOutcome(
            student_id=student_id,
            item_id=item_id,
            topic_id=topic_id,
            correct=correct,
            quality=quality,
        )

        def update_mastery_step() -> float:
            with self._lock(f"lock:mastery:{student_id}:{topic_id}"):
                with session_scope(self.session_factory) as db:
                    p, _ = update_from_attempt(db, student_id, get_topic(db, topic_id), correct, now)
            return p

        def ledger_step() -> None:
            if not correct:
                self.ledger.record_wrong(student_id, item_id, topic_id)

        def drill_step() -> None:
            if not correct:
                self.drill.enter(student_id, topic_id)
                return
            if self.drill.clear_if(student_id, topic_id):
                logger.info(
                    "drill_mode_cleared",
                    extra={"event": "drill_mode_cleared", "student_id": student_id, "topic_id": topic_id},
                )

        def review_step() -> None:
            with self._lock(f"lock:review:{student_id}:{item_id}"):
                with session_scope(self.session_factory) as db:
                    srs_service.reschedule(db, student_id, item_id, topic_id, quality, now)

        def event_step() -> None:
            with session_scope(self.session_factory) as db:
                db.add(
                    ExerciseEvent(
                        student_id=student_id,
                        item_id=item_id,
                        topic_id=topic_id,
                        correct=correct,
                        duration_ms=duration_ms,
                        quality=quality,
                        occurred_at=now,
                    )
                )

        outcome.p_mastery = self._run_step(outcome, RecordStep.MASTERY, update_mastery_step)
        self._run_step(outcome, RecordStep.LEDGER, ledger_step)
        self._run_step(outcome, RecordStep.DRILL, drill_step)
        self._run_step(outcome, RecordStep.REVIEW, review_step)
        self._run_step(outcome, RecordStep.EVENT, event_step)

        logger.info(
            f"Recorded answer: {explain_quality(quality, duration_ms)}",
            extra={
                "event": "answer_recorded",
                "student_id": student_id,
                "item_id": item_id,
                "topic_id": topic_id,
                "quality": quality,
                "complete": outcome.complete,
            },
        )
        return outcome

    def close(self) -> None:
        if self._generator_executor is not None:
            self._generator_executor.shutdown(wait=False, cancel_futures=True)
        if self.refiller is not None:
            self.refiller.shutdown(wait=False)
