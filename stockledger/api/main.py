"""
FastAPI application factory.

Creates and configures the main application instance.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockledger.api.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from stockledger.api.middleware.error_handler import setup_exception_handlers
from stockledger.api.routes import (
    health_router,
    jobs_router,
    recalc_router,
    stock_router,
)
from stockledger.config import configure_logging, get_logger, get_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.

    Migrates the database, opens the pool and starts the background
    scheduler; tears them down in reverse order.
    """
    settings = get_settings()

    logger.info(
        "application_starting",
        host=settings.api.host,
        port=settings.api.port,
        debug=settings.api.debug,
    )

    try:
        from stockledger.infrastructure.storage.sqlite import get_pool
        from stockledger.infrastructure.storage.sqlite.migrations.migrator import (
            run_migrations,
        )

        await run_migrations()

        await get_pool()
        logger.info("connection_pool_ready")

    except Exception as e:
        logger.error("database_init_failed", error=str(e))
        raise

    from stockledger.application.scheduler import get_scheduler

    scheduler = get_scheduler()
    await scheduler.start()

    logger.info("application_started")

    yield

    logger.info("application_stopping")

    await scheduler.stop()

    try:
        from stockledger.infrastructure.storage.sqlite import close_pool

        await close_pool()

    except Exception as e:
        logger.warning("connection_pool_close_failed", error=str(e))

    logger.info("application_stopped")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()
    configure_logging()

    app = FastAPI(
        title="Stock Ledger API",
        description="Daily stock snapshots, cascading recalculation and availability checks",
        version=settings.app_version,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(stock_router)
    app.include_router(recalc_router)
    app.include_router(jobs_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Return API info."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    # Root health endpoint (for k8s/docker health checks)
    @app.get("/health")
    async def root_health() -> dict[str, str]:
        """Simple health check at root level."""
        return {"status": "healthy", "version": settings.app_version}

    return app


# Create app instance
app = create_app()
