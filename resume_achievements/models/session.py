"""
Domain models for per-user session state.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


SessionField = Literal["dataset", "summary", "final"]


class UploadedDataset(BaseModel):
    """A CSV upload stored on disk for later processing."""

    file_path: Path = Field(..., description="Location of the stored upload.")
    filename: str = Field(..., description="Name the client uploaded the file as.")
    headers: list[str] = Field(default_factory=list, description="Unique headers in order.")
    original_headers: list[str] = Field(
        default_factory=list, description="Header row as parsed, duplicates included."
    )
    row_count: int = 0
    uploaded_at: datetime = Field(default_factory=_utcnow)


class SummaryResult(BaseModel):
    """Deduplicated achievements produced by a full processing run."""

    selected_columns: list[str]
    instruction: Optional[str] = None
    completed_at: datetime = Field(default_factory=_utcnow)
    achievements: list[str] = Field(default_factory=list)


class FinalResult(BaseModel):
    """User-curated (and optionally refined) achievements ready for export."""

    achievements: list[str] = Field(default_factory=list)
    refinement_instruction: Optional[str] = None
    completed_at: datetime = Field(default_factory=_utcnow)
    file_path: Optional[Path] = None


class SessionRecord(BaseModel):
    """Everything the service remembers about one browser session."""

    session_id: str
    dataset: Optional[UploadedDataset] = None
    summary: Optional[SummaryResult] = None
    final: Optional[FinalResult] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def has(self, field: SessionField) -> bool:
        return getattr(self, field) is not None

    def storage_paths(self) -> list[Path]:
        paths: list[Path] = []
        if self.dataset is not None:
            paths.append(self.dataset.file_path)
        if self.final is not None and self.final.file_path is not None:
            paths.append(self.final.file_path)
        return paths


__all__ = [
    "FinalResult",
    "SessionField",
    "SessionRecord",
    "SummaryResult",
    "UploadedDataset",
]
