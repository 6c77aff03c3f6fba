# src/civic_guard/main.py
"""Main entry point for the Civic Guard application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from civic_guard.api.v1 import (
    anonymous_router,
    audit_router,
    items_router,
    moderation_router,
    system_router,
)
from civic_guard.core.settings import settings
from civic_guard.services.scoring_worker import ScoringWorker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Civic Guard API",
    description="Moderation and community consensus for citizen reports and chat",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(items_router, prefix="/api/v1")
app.include_router(moderation_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")
app.include_router(anonymous_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scoring_mode == "background":
        worker = ScoringWorker()
        await worker.start()
        app.state.scoring_worker = worker
        logger.info(
            "Background scoring enabled (interval=%.1fs)",
            settings.scoring_sweep_interval_seconds,
        )
    else:
        app.state.scoring_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: ScoringWorker | None = getattr(app.state, "scoring_worker", None)
    if worker:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Moderation and community consensus for citizen reports and chat",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("civic_guard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
