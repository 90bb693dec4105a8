"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_dataset_service,
    get_gemini_client,
    get_job_registry,
    get_pipeline_orchestrator,
    get_session_store,
    get_summarizer,
    get_tabular_batcher,
    get_temp_file_manager,
)
from .config import SettingsDependency, get_app_settings, get_session_id

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_dataset_service",
    "get_gemini_client",
    "get_job_registry",
    "get_pipeline_orchestrator",
    "get_session_id",
    "get_session_store",
    "get_summarizer",
    "get_tabular_batcher",
    "get_temp_file_manager",
]
