#!/usr/bin/env python3
"""
simple-text Backend - append-only note capture

Accepts a buffer name and a text fragment, appends the fragment to an
encrypted buffer file inside a local git mirror, then commits and pushes.

Requests against the mirror are serialized by the sync service; run a
single worker process per mirror.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.settings import AppConfig, setup_logging, HealthCheckFilter
from sync.errors import SyncError
from sync.routes import router as simple_text_router
from sync.service import get_sync_service

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Validate configuration early to fail fast on misconfiguration
    AppConfig.validate()

    logger.info("Starting simple-text backend...")

    # Reapply health check filter to uvicorn access logger (must be done after uvicorn starts)
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())

    # Warm up the mirror; requests retry this themselves, so a failure here is not fatal
    try:
        await get_sync_service().open_or_reconcile_repo()
    except SyncError as e:
        logger.error(f"Mirror not ready at startup: {e}")

    yield

    logger.info("simple-text backend stopped")


app = FastAPI(
    title="simple-text API",
    version="1.0.0",
    lifespan=lifespan
)


# Custom exception handler for Pydantic validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Custom handler for Pydantic validation errors.
    Returns user-friendly error messages with field-level details.
    """
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error['loc'])
        errors.append({
            "field": field,
            "message": error['msg'],
            "type": error['type']
        })

    logger.warning(f"Validation failed for {request.url.path}: {errors}")

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Invalid request data",
            "errors": errors
        }
    )


app.include_router(simple_text_router)


@app.get("/health")
async def health_check():
    """Health check endpoint - no authentication required"""
    return {"status": "healthy", "service": "simple-text-backend"}


def run():
    """Console entry point."""
    uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT, log_config=None)


if __name__ == "__main__":
    run()
