"""Public schema exports."""

from .datasets import AIStatus, CleanupResponse, UploadSummary
from .events import (
    ChunkCompleted,
    ChunkProgress,
    PipelineEvent,
    ProcessingCancelled,
    ProcessingCompleted,
    ProcessingFailed,
    ProcessingRequest,
    ProcessingStarted,
    ReprocessingRequest,
    SocketCommand,
)

__all__ = [
    "AIStatus",
    "ChunkCompleted",
    "ChunkProgress",
    "CleanupResponse",
    "PipelineEvent",
    "ProcessingCancelled",
    "ProcessingCompleted",
    "ProcessingFailed",
    "ProcessingRequest",
    "ProcessingStarted",
    "ReprocessingRequest",
    "SocketCommand",
    "UploadSummary",
]
