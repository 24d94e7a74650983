"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session, sessionmaker

from adaptive_practice.api.v1.router import api_router
from adaptive_practice.cache.redis import RedisCache
from adaptive_practice.common.request_id import RequestIDMiddleware
from adaptive_practice.core.app_exceptions import EngineError
from adaptive_practice.core.config import settings
from adaptive_practice.core.errors import (
    engine_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from adaptive_practice.core.logging import get_logger, setup_logging
from adaptive_practice.core.redis_client import create_redis_client
from adaptive_practice.db.base import Base
from adaptive_practice.db.session import get_session_factory
from adaptive_practice.integrations.content_generator import HttpContentGenerator
from adaptive_practice.integrations.item_source import HttpItemSource
from adaptive_practice.integrations.pool import ItemPool, PoolRefiller
from adaptive_practice.learning_engine.orchestrator import PracticeOrchestrator

logger = get_logger(__name__)


def build_orchestrator(app: FastAPI) -> PracticeOrchestrator:
    """Wire the engine from settings and keep its collaborators on ``app.state``."""
    session_factory: sessionmaker[Session] = get_session_factory()
    cache = RedisCache(create_redis_client(settings))

    generator = HttpContentGenerator.from_settings(settings)
    source = HttpItemSource.from_settings(settings)
    pool = ItemPool(cache, ttl_seconds=settings.POOL_TTL_SECONDS)
    refiller = None
    if source is not None:
        refiller = PoolRefiller(
            pool,
            source,
            batch_size=settings.POOL_BATCH_SIZE,
            low_watermark=settings.POOL_LOW_WATERMARK,
            max_workers=settings.POOL_REFILL_WORKERS,
        )
    else:
        logger.warning("ITEM_SOURCE_URL not set; supply pool will not be refilled")
    if generator is None:
        logger.warning("GENERATOR_URL not set; content generation fallback disabled")

    app.state.session_factory = session_factory
    app.state.cache = cache
    app.state.closers = [c.close for c in (generator, source) if c is not None]
    return PracticeOrchestrator(
        session_factory=session_factory,
        cache=cache,
        generator=generator,
        pool=pool,
        refiller=refiller,
        config=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = build_orchestrator(app)
        # Create tables (in production, use migrations)
        if settings.ENV == "dev":
            Base.metadata.create_all(bind=app.state.session_factory.kw["bind"])
    yield
    app.state.orchestrator.close()
    for close in getattr(app.state, "closers", []):
        close()


def create_app(
    orchestrator: PracticeOrchestrator | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Passing ``orchestrator`` and ``session_factory`` skips wiring from settings.
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        description="Adaptive knowledge tracing and practice scheduling API",
        openapi_url="/openapi.json" if settings.ENV != "prod" else None,
        docs_url="/docs" if settings.ENV != "prod" else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator
        app.state.cache = orchestrator.cache
        app.state.session_factory = session_factory or orchestrator.session_factory

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(EngineError, engine_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint - API information."""
        return {
            "message": settings.PROJECT_NAME,
            "version": "0.1.0",
            "docs_url": "/docs" if settings.ENV != "prod" else None,
        }

    return app


# Create app instance
app = create_app()
