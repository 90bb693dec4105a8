"""Service layer exports."""

from .datasets import DatasetService, ExportPayload
from .event_channel import EventChannel, EventSink
from .job_state import JobRegistry, JobState, Operation
from .pipeline import PipelineOrchestrator
from .session_store import FallbackSessionStore, InMemorySessionBackend, SessionStore
from .summarizer import RemoteSummarizer, parse_items
from .tabular_batcher import Batch, BatchStats, TabularBatcher
from .temp_files import TempFileManager

__all__ = [
    "Batch",
    "BatchStats",
    "DatasetService",
    "EventChannel",
    "EventSink",
    "ExportPayload",
    "FallbackSessionStore",
    "InMemorySessionBackend",
    "JobRegistry",
    "JobState",
    "Operation",
    "PipelineOrchestrator",
    "RemoteSummarizer",
    "SessionStore",
    "TabularBatcher",
    "TempFileManager",
    "parse_items",
]
