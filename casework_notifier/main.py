"""
FastAPI app: health checks and the automation admin routes.
Reminder scans themselves run in the worker process (casework_notifier.jobs.worker).
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from casework_notifier.config import settings
from casework_notifier.infrastructure.observability.logging import get_logger, setup_logging
from casework_notifier.jobs.runtime import shutdown_runtime
from casework_notifier.routes import automation, health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """The runtime is built lazily on the first admin request and closed on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    yield

    logger.info("Application shutting down")
    try:
        await shutdown_runtime()
    except Exception as e:
        logger.error("Error closing automation runtime", error=str(e))


app = FastAPI(
    title="Casework Notifier",
    description="Contact and court-summary reminders for a casework team",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(automation.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
