"""Social Connect Engine - Main FastAPI Application."""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from infrastructure.cache import close_cache_store
from infrastructure.config import get_settings
from infrastructure.database import close_db, init_db
from infrastructure.logging_config import setup_logging
from services.instagram_publishing import InstagramContainerWorker
from services.token_refresh_job import TokenRefreshJob

settings = get_settings()
logger = logging.getLogger(__name__)

token_refresh_job = TokenRefreshJob()
container_worker = InstagramContainerWorker()


async def _stop_worker(name: str, worker, task: asyncio.Task | None) -> None:
    if task is None:
        return
    logger.info("Stopping %s...", name)
    await worker.stop()
    task.cancel()
    # Wait up to 30 s for an in-flight pass to finish
    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=30.0)
    except (TimeoutError, asyncio.CancelledError):
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # JSON logs in production/staging, human-readable in development
    setup_logging(
        json_output=not settings.debug and settings.is_production,
        level="DEBUG" if settings.debug else settings.log_level,
    )

    # Startup
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Environment: %s", settings.environment)

    settings.validate_production_secrets()

    if settings.is_development:
        logger.info("Development mode - initializing database...")
        await init_db()

    refresh_task = None
    if settings.token_refresh_enabled:
        logger.info("Starting token refresh job...")
        refresh_task = asyncio.create_task(token_refresh_job.start(), name="token-refresh")

    container_task = None
    if settings.instagram_worker_enabled:
        logger.info("Starting Instagram container worker...")
        container_task = asyncio.create_task(container_worker.start(), name="ig-containers")

    logger.info("Application started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down...")

    await _stop_worker("token refresh job", token_refresh_job, refresh_task)
    await _stop_worker("Instagram container worker", container_worker, container_task)

    await close_cache_store()
    await close_db()
    logger.info("Application stopped.")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Social platform OAuth connections, token lifecycle and publishing",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Production logs only type and a truncated message; the text may carry connection strings
    if settings.environment == "production":
        logger.error("Unhandled exception: %s: %s", type(exc).__name__, str(exc)[:200])
    else:
        logger.error("Unhandled exception: %s", str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time"] = f"{duration_ms:.1f}ms"

    # Skip logging for health checks to avoid log noise
    path = request.url.path
    if path != "/health":
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            path,
            response.status_code,
            round(duration_ms, 1),
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
            },
        )
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    incoming = request.headers.get("X-Request-ID")
    # Only accept the caller's ID if it is a valid UUID to prevent log injection
    if incoming:
        try:
            uuid.UUID(incoming)
            request_id = incoming
        except ValueError:
            request_id = str(uuid.uuid4())
    else:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/health")
async def health():
    """Liveness check reporting background worker state."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "workers": {
            "token_refresh": {
                "enabled": settings.token_refresh_enabled,
                "running": token_refresh_job.is_running,
            },
            "instagram_containers": {
                "enabled": settings.instagram_worker_enabled,
                "running": container_worker.is_running,
            },
        },
    }


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.is_development else "disabled",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=settings.workers if not settings.is_development else 1,
    )
