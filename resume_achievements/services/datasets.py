"""Upload intake, export and cleanup for a session's dataset."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePath

from resume_achievements.core.errors import InputError, SessionMissError, StorageError
from resume_achievements.models.session import SessionRecord, UploadedDataset
from resume_achievements.schemas import UploadSummary
from resume_achievements.services.session_store import SessionStore
from resume_achievements.services.tabular_batcher import TabularBatcher
from resume_achievements.services.temp_files import TempFileManager, render_export

logger = logging.getLogger(__name__)

_CSV_MIME_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}


def _describe_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes // (1024 * 1024)} MB"
    return f"{size_bytes} byte"


@dataclass(slots=True)
class ExportPayload:
    session_id: str
    filename: str
    content: str


class DatasetService:
    """Coordinate temp storage and session state around uploads and downloads."""

    def __init__(
        self,
        *,
        store: SessionStore,
        files: TempFileManager,
        batcher: TabularBatcher,
        file_size_limit_bytes: int = 50 * 1024 * 1024,
        download_cleanup_delay_seconds: float = 5.0,
    ) -> None:
        self._store = store
        self._files = files
        self._batcher = batcher
        self._size_limit = file_size_limit_bytes
        self._download_delay = download_cleanup_delay_seconds

    def ingest(
        self,
        session_id: str,
        filename: str | None,
        content: bytes,
        content_type: str | None = None,
    ) -> UploadSummary:
        """Store an upload and replace any previous dataset for the session."""
        name = PurePath(filename or "").name
        if not name:
            raise InputError("No file uploaded")
        if not (name.lower().endswith(".csv") or (content_type or "").lower() in _CSV_MIME_TYPES):
            raise InputError("Only CSV files are allowed")
        if len(content) > self._size_limit:
            raise InputError(f"File exceeds the {_describe_size(self._size_limit)} limit")

        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InputError("Invalid CSV format: file is not UTF-8 encoded") from exc

        headers = self._batcher.get_headers(text)
        unique_headers = list(dict.fromkeys(header for header in headers if header))
        row_count = self._batcher.count_rows(text)

        path = self._files.write_upload(session_id, content)
        try:
            record = self._store.get(session_id) or SessionRecord(session_id=session_id)
            previous = record.storage_paths()
            record.dataset = UploadedDataset(
                file_path=path,
                filename=name,
                headers=unique_headers,
                original_headers=headers,
                row_count=row_count,
            )
            record.summary = None
            record.final = None
            self._store.save(record)
        except Exception:
            self._files.release(path)
            raise
        self._files.release_many(previous)

        logger.info(
            "Accepted upload",
            extra={"session_id": session_id, "upload_filename": name, "rows": row_count},
        )
        return UploadSummary(
            filename=name,
            headers=unique_headers,
            original_headers=headers,
            row_count=row_count,
        )

    def export(self, session_id: str | None) -> ExportPayload:
        """Render the final achievements for download.

        The session is left in place; call ``schedule_cleanup`` once the
        response has been delivered.
        """
        record = self._store.resolve(session_id, "final")
        final = record.final
        if final is None or record.dataset is None:
            raise SessionMissError("No processed data available")

        content = None
        if final.file_path is not None:
            try:
                content = self._files.read_text(final.file_path)
            except StorageError:
                logger.warning("Export file unavailable; rendering from session", extra={"session_id": record.session_id})
        if content is None:
            content = render_export(final.achievements)

        base = Path(record.dataset.filename).stem or "achievements"
        return ExportPayload(
            session_id=record.session_id,
            filename=f"{base}-resume-achievements.txt",
            content=content,
        )

    def schedule_cleanup(self, session_id: str) -> None:
        """Release a downloaded session after the configured delay."""
        self._store.destroy_later(session_id, self._download_delay)

    def cleanup(self, session_id: str | None) -> None:
        """Release files and forget the session. Safe to call repeatedly."""
        if not session_id:
            return
        record = self._store.get(session_id)
        if record is not None:
            self._files.release_session_files(record)
        self._store.destroy(session_id)
        logger.info("Session cleaned up", extra={"session_id": session_id})


__all__ = ["DatasetService", "ExportPayload"]
