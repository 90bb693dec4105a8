"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from resume_achievements.clients import GeminiClient
from resume_achievements.core.config import get_settings
from resume_achievements.services import (
    DatasetService,
    FallbackSessionStore,
    JobRegistry,
    PipelineOrchestrator,
    RemoteSummarizer,
    TabularBatcher,
    TempFileManager,
)
from resume_achievements.utils.retry import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_gemini_client() -> GeminiClient | None:
    """Provide Gemini client instance when an API key is configured."""
    settings = _settings()
    if not settings.gemini.enabled:
        return None
    return GeminiClient(settings.gemini)


@lru_cache()
def get_summarizer() -> RemoteSummarizer | None:
    """Provide the summarizer, or ``None`` to run in degraded mode."""
    client = get_gemini_client()
    if client is None:
        return None
    return RemoteSummarizer(
        client,
        retry_config=RetryConfig(attempts=_settings().gemini.max_attempts),
    )


@lru_cache()
def get_temp_file_manager() -> TempFileManager:
    """Provide the shared temp file area."""
    return TempFileManager.from_settings(_settings().storage)


@lru_cache()
def get_session_store() -> FallbackSessionStore:
    """Provide the process-wide session store."""
    return FallbackSessionStore.from_settings(
        _settings().session,
        release_files=get_temp_file_manager().release_session_files,
    )


@lru_cache()
def get_job_registry() -> JobRegistry:
    """Provide the per-connection job registry."""
    return JobRegistry()


@lru_cache()
def get_tabular_batcher() -> TabularBatcher:
    return TabularBatcher.from_settings(_settings().batching)


def get_dataset_service() -> DatasetService:
    """Build a dataset service over the shared store and temp files."""
    settings = _settings()
    return DatasetService(
        store=get_session_store(),
        files=get_temp_file_manager(),
        batcher=get_tabular_batcher(),
        file_size_limit_bytes=settings.storage.file_size_limit_bytes,
        download_cleanup_delay_seconds=settings.session.download_cleanup_delay_seconds,
    )


@lru_cache()
def get_pipeline_orchestrator() -> PipelineOrchestrator:
    """Provide the pipeline orchestrator shared by all connections."""
    return PipelineOrchestrator(
        store=get_session_store(),
        files=get_temp_file_manager(),
        batcher=get_tabular_batcher(),
        summarizer=get_summarizer(),
        jobs=get_job_registry(),
    )


__all__ = [
    "get_dataset_service",
    "get_gemini_client",
    "get_job_registry",
    "get_pipeline_orchestrator",
    "get_session_store",
    "get_summarizer",
    "get_tabular_batcher",
    "get_temp_file_manager",
]
