"""Background worker that expires sessions and sweeps abandoned temp files."""

from __future__ import annotations

import asyncio
import logging

from resume_achievements.core.config import StorageSettings
from resume_achievements.services.session_store import FallbackSessionStore
from resume_achievements.services.temp_files import TempFileManager

logger = logging.getLogger(__name__)


class HousekeepingWorker:
    """Periodically purge expired sessions and stale files."""

    def __init__(
        self,
        store: FallbackSessionStore,
        files: TempFileManager,
        *,
        interval_seconds: float = 3600.0,
        max_file_age_seconds: float = 7200.0,
    ) -> None:
        self._store = store
        self._files = files
        self._interval = interval_seconds
        self._max_file_age = max_file_age_seconds

    @classmethod
    def from_settings(
        cls,
        settings: StorageSettings,
        store: FallbackSessionStore,
        files: TempFileManager,
    ) -> "HousekeepingWorker":
        return cls(
            store,
            files,
            interval_seconds=settings.cleanup_interval_seconds,
            max_file_age_seconds=settings.temp_file_max_age_seconds,
        )

    def run_once(self) -> tuple[list[str], int]:
        """Purge expired sessions and sweep old files; return what went."""
        expired = self._store.primary.purge_expired()
        removed = self._files.sweep_stale(self._max_file_age)
        if expired:
            logger.info("Expired sessions purged", extra={"expired": len(expired)})
        return expired, removed

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.run_once()
            except Exception:  # noqa: BLE001 - keep the loop alive
                logger.exception("Housekeeping pass failed")


__all__ = ["HousekeepingWorker"]
