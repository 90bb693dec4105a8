"""
HTTP routes for uploading datasets, downloading achievements and session housekeeping.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from starlette.background import BackgroundTask

from resume_achievements.core.errors import InputError, SessionMissError
from resume_achievements.dependencies import (
    get_app_settings,
    get_dataset_service,
    get_session_id,
    get_summarizer,
)
from resume_achievements.schemas import AIStatus, CleanupResponse, UploadSummary

router = APIRouter()
logger = logging.getLogger(__name__)

SAMPLE_FILENAME = "jira-sample.csv"


def content_disposition(filename: str) -> str:
    """Build an attachment header that survives non-ASCII and quoted names."""
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/upload",
    status_code=HTTPStatus.OK,
    response_model=UploadSummary,
    response_model_by_alias=True,
)
async def upload_dataset(
    datasets: Annotated[Any, Depends(get_dataset_service)],
    session_id: Annotated[str, Depends(get_session_id)],
    csv_file: UploadFile | None = File(default=None, alias="csvFile"),
) -> UploadSummary:
    """Accept a CSV upload and return its headers for column selection."""
    if csv_file is None:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="No file uploaded")
    content = await csv_file.read()
    try:
        return await asyncio.to_thread(
            datasets.ingest, session_id, csv_file.filename, content, csv_file.content_type
        )
    except InputError as exc:
        logger.info("Rejected upload: %s", exc.message, extra={"session_id": session_id})
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=exc.message) from exc
    finally:
        await csv_file.close()


@router.get("/download")
async def download_achievements(
    request: Request,
    datasets: Annotated[Any, Depends(get_dataset_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> PlainTextResponse:
    """Serve the finalized achievements as a text attachment.

    The session is only scheduled for release once the body has been sent.
    """
    session_id = request.cookies.get(settings.session.cookie_name)
    try:
        payload = await asyncio.to_thread(datasets.export, session_id)
    except SessionMissError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=exc.message) from exc

    async def _release_after_send() -> None:
        datasets.schedule_cleanup(payload.session_id)

    return PlainTextResponse(
        payload.content,
        headers={"Content-Disposition": content_disposition(payload.filename)},
        background=BackgroundTask(_release_after_send),
    )


@router.get("/sample-csv")
async def download_sample(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> Response:
    """Offer an example tracker export for users without data of their own."""
    path = settings.storage.sample_csv_path
    if not path.is_file():
        logger.warning("Sample CSV missing", extra={"path": str(path)})
        return JSONResponse(
            status_code=HTTPStatus.NOT_FOUND,
            content={"error": "Sample file not found"},
        )
    return FileResponse(path, media_type="text/csv", filename=SAMPLE_FILENAME)


@router.get("/ai-status", response_model=AIStatus, response_model_exclude_none=True)
async def ai_status(
    summarizer: Annotated[Any, Depends(get_summarizer)],
) -> AIStatus:
    """Report whether summarization is configured and answering."""
    if summarizer is None:
        return AIStatus(
            enabled=False,
            message="AI processing is disabled. Set GEMINI_API_KEY to enable it.",
        )
    working = await summarizer.test_connectivity()
    message = "AI service is working" if working else "AI service is configured but not responding"
    return AIStatus(enabled=True, working=working, message=message)


@router.api_route("/cleanup", methods=["GET", "POST"], response_model=CleanupResponse)
async def cleanup_session(
    request: Request,
    response: Response,
    datasets: Annotated[Any, Depends(get_dataset_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> CleanupResponse:
    """Release the caller's files and forget their session."""
    cookie_name = settings.session.cookie_name
    await asyncio.to_thread(datasets.cleanup, request.cookies.get(cookie_name))
    response.delete_cookie(cookie_name)
    return CleanupResponse()


__all__ = ["content_disposition", "router"]
