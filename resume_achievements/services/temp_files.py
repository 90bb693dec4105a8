"""Temporary on-disk storage for uploaded datasets and exported achievements."""

from __future__ import annotations

import logging
import os
import secrets
import time
from pathlib import Path
from typing import Iterable, Sequence

from resume_achievements.core.config import StorageSettings
from resume_achievements.core.errors import StorageError
from resume_achievements.models.session import SessionRecord

logger = logging.getLogger(__name__)

EXPORT_SUFFIX = "_achievements.txt"
UPLOAD_SUFFIX = ".csv"


def _ensure_directory(path: Path) -> None:
    if not path.exists():
        path.mkdir(parents=True, exist_ok=True, mode=0o700)


class TempFileManager:
    """Create uniquely named files under one directory and release them safely."""

    def __init__(self, temp_dir: Path | str) -> None:
        self._dir = Path(temp_dir)
        _ensure_directory(self._dir)

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "TempFileManager":
        return cls(settings.temp_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def new_path(self, session_id: str, suffix: str = "") -> Path:
        stamp = int(time.time() * 1000)
        token = secrets.token_hex(6)
        safe_session = "".join(ch for ch in session_id if ch.isalnum() or ch in "-_") or "unknown"
        return self._dir / f"{safe_session}_{stamp}_{token}{suffix}"

    def write_upload(self, session_id: str, content: bytes) -> Path:
        path = self.new_path(session_id, UPLOAD_SUFFIX)
        try:
            path.write_bytes(content)
        except OSError as exc:
            raise StorageError(f"Unable to store uploaded file: {exc}") from exc
        return path

    def write_export(self, session_id: str, achievements: Sequence[str]) -> Path | None:
        """Persist achievements for download; ``None`` when there is nothing to write."""
        if not achievements:
            return None
        path = self.new_path(session_id, EXPORT_SUFFIX)
        try:
            path.write_text(render_export(achievements), encoding="utf-8")
        except OSError:
            logger.exception("Failed writing export file", extra={"path": str(path)})
            return None
        return path

    def read_text(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8-sig")
        except FileNotFoundError as exc:
            raise StorageError("CSV file no longer exists") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Unable to read stored file: {exc}") from exc

    def release(self, path: Path | str | None) -> bool:
        """Delete ``path`` if present. Safe to call repeatedly."""
        if not path:
            return False
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Failed to release temp file", extra={"path": str(path)}, exc_info=True)
            return False
        return True

    def release_many(self, paths: Iterable[Path | str | None]) -> int:
        return sum(1 for path in paths if self.release(path))

    def release_session_files(self, record: SessionRecord) -> int:
        return self.release_many(record.storage_paths())

    def sweep_stale(self, max_age_seconds: float) -> int:
        """Remove files older than ``max_age_seconds``; return how many went."""
        cutoff = time.time() - max_age_seconds
        removed = 0
        for entry in self._iter_files():
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
            except FileNotFoundError:
                continue
            if self.release(entry):
                removed += 1
        if removed:
            logger.info("Swept stale temp files", extra={"removed": removed})
        return removed

    def release_all(self) -> int:
        return self.release_many(list(self._iter_files()))

    def _iter_files(self) -> Iterable[Path]:
        try:
            with os.scandir(self._dir) as entries:
                return [Path(entry.path) for entry in entries if entry.is_file()]
        except FileNotFoundError:
            return []


def render_export(achievements: Sequence[str]) -> str:
    return "\n\n".join(achievements)


__all__ = ["TempFileManager", "render_export"]
