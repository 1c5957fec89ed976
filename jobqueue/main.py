from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from jobqueue.config.logging import get_logger, setup_logging
from jobqueue.config.settings import Settings, settings as default_settings
from jobqueue.infra.database import Database
from jobqueue.v1.core.exceptions import (
    JobQueueException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    job_queue_exception_handler,
)
from jobqueue.v1.healthz import router as health_router
from jobqueue.v1.infra.jobs.registry_init import register_job_handlers
from jobqueue.v1.infra.jobs.routes import router as jobs_router
from jobqueue.v1.infra.jobs.service import build_queue_service

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        database = Database(settings)
        if settings.create_tables:
            await database.create_all()

        service = build_queue_service(database, settings)
        register_job_handlers(service)

        # Freeze handlers in non-development environments to prevent runtime modifications
        if settings.environment != "development":
            service.handlers.freeze()

        app.state.database = database
        app.state.queue_service = service

        for queue in settings.worker_queues:
            await service.process(queue, settings.worker_concurrency)

        try:
            yield
        finally:
            await service.stop()
            service.close()
            await database.close()
            logger.info("Job queue shut down")

    # Create FastAPI app with API versioning from day 1
    app = FastAPI(
        title=settings.app_name,
        description="Durable priority job queue with retries and backoff",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        # All endpoints will be under /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(JobQueueException, job_queue_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "jobqueue.main:create_app",
        factory=True,
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )


if __name__ == "__main__":
    main()
