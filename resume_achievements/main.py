"""
FastAPI application entrypoint for the resume achievements service.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from fastapi import FastAPI

from resume_achievements.api import router as api_router
from resume_achievements.core.config import get_settings
from resume_achievements.core.logging import configure_logging
from resume_achievements.dependencies import get_session_store, get_temp_file_manager
from resume_achievements.workers import HousekeepingWorker

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    files = get_temp_file_manager()
    worker = HousekeepingWorker.from_settings(settings.storage, get_session_store(), files)
    task = asyncio.create_task(worker.run_forever())
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        removed = files.release_all()
        logger.info("Released temp files on shutdown", extra={"removed": removed})


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Resume Achievements Generator",
        version="0.1.0",
        description="Turn work-tracking CSV exports into resume achievements.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
