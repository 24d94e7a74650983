"""Pytest configuration and shared fixtures."""

import random
from collections.abc import Generator
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import adaptive_practice.models  # noqa: F401  (registers tables)
from adaptive_practice.core.config import Settings
from adaptive_practice.db.base import Base
from adaptive_practice.learning_engine.orchestrator import PracticeOrchestrator
from tests.helpers.memory_cache import MemoryCache

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database per test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ENV="test",
        STORAGE_RETRY_ATTEMPTS=3,
        STORAGE_RETRY_BACKOFF_SECONDS=0,
        LOCK_WAIT_SECONDS=0.1,
        GENERATOR_TIMEOUT_SECONDS=0.5,
    )


@pytest.fixture
def orchestrator(
    session_factory: sessionmaker[Session],
    cache: MemoryCache,
    clock: FrozenClock,
    test_settings: Settings,
) -> Generator[PracticeOrchestrator, None, None]:
    orch = PracticeOrchestrator(
        session_factory=session_factory,
        cache=cache,
        rng=random.Random(7),
        clock=clock,
        config=test_settings,
        sleep=lambda _: None,
    )
    yield orch
    orch.close()
