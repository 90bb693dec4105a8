"""
Pydantic models for upload, export and status responses.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadSummary(BaseModel):
    """Response returned after a CSV upload is accepted."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    filename: str
    headers: list[str] = Field(..., description="Unique header names in file order.")
    original_headers: list[str] = Field(..., alias="originalHeaders")
    row_count: int = Field(..., alias="rowCount")


class AIStatus(BaseModel):
    """Whether summarization is configured and reachable."""

    enabled: bool
    working: Optional[bool] = None
    message: str


class CleanupResponse(BaseModel):
    success: bool = True
    message: str = "Session cleaned up"
