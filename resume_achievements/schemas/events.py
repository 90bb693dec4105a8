"""
Pydantic models for messages exchanged over the processing websocket.
"""

from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PipelineEvent(_CamelModel):
    """Base for every outbound event; ``event`` names it on the wire."""

    event: ClassVar[str] = ""
    terminal: ClassVar[bool] = False

    def to_message(self) -> dict:
        return {
            "event": self.event,
            "data": self.model_dump(by_alias=True, exclude_none=True),
        }


class ProcessingStarted(PipelineEvent):
    event: ClassVar[str] = "processing-started"

    message: str


class ChunkProgress(PipelineEvent):
    event: ClassVar[str] = "chunk-progress"

    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    status: str


class ChunkCompleted(PipelineEvent):
    event: ClassVar[str] = "chunk-completed"

    chunk_index: int = Field(..., alias="chunkIndex")
    progress: int = Field(..., ge=0, le=100)
    partial_results: list[str] = Field(default_factory=list, alias="partialResults")


class ProcessingCompleted(PipelineEvent):
    event: ClassVar[str] = "processing-completed"
    terminal: ClassVar[bool] = True

    achievements: list[str]
    total_achievements: int = Field(..., alias="totalAchievements")
    progress: int = 100
    download_ready: Optional[bool] = Field(None, alias="downloadReady")


class ProcessingCancelled(PipelineEvent):
    event: ClassVar[str] = "processing-cancelled"
    terminal: ClassVar[bool] = True

    message: str


class ProcessingFailed(PipelineEvent):
    event: ClassVar[str] = "processing-error"
    terminal: ClassVar[bool] = True

    error: str
    can_retry: bool = Field(False, alias="canRetry")


class ProcessingRequest(_CamelModel):
    """Payload of a ``start-processing`` message."""

    selected_fields: list[str] = Field(default_factory=list, alias="selectedFields")
    ai_prompt: str = Field("", alias="aiPrompt")


class ReprocessingRequest(_CamelModel):
    """Payload of a ``start-reprocessing`` message."""

    selected_achievements: list[str] = Field(
        default_factory=list, alias="selectedAchievements"
    )
    additional_prompt: str = Field("", alias="additionalPrompt")


class SocketCommand(BaseModel):
    """Envelope for inbound websocket messages."""

    type: str = Field(..., description="start-processing, start-reprocessing or cancel-processing")
    data: dict = Field(default_factory=dict)
