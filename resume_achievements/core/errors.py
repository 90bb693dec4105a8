"""
Exception taxonomy shared by the pipeline, the store and the HTTP layer.

Every error carries ``can_retry`` so the websocket layer can tell the client
whether resubmitting the same request is worthwhile.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors surfaced to clients."""

    can_retry: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(PipelineError):
    """Malformed upload, empty selection or missing prior-stage data."""


class StorageError(InputError):
    """A backing file is missing or cannot be written."""


class SessionMissError(PipelineError):
    """No session state exists for the caller, even after recovery."""


class JobAlreadyRunningError(InputError):
    """A pipeline run is already active on this connection."""


class RemoteServiceError(PipelineError):
    """The text-generation backend failed."""

    can_retry = True


class TransientRemoteError(RemoteServiceError):
    """Backend failure that may succeed when attempted again."""


class RateLimitError(TransientRemoteError):
    """Backend signalled that the caller is being rate limited."""


class FatalRemoteError(RemoteServiceError):
    """Request exceeds the backend's payload or token limits."""

    DEFAULT_MESSAGE = (
        "Request too large: token limit exceeded. Try processing smaller batches."
    )

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)


__all__ = [
    "FatalRemoteError",
    "InputError",
    "JobAlreadyRunningError",
    "PipelineError",
    "RateLimitError",
    "RemoteServiceError",
    "SessionMissError",
    "StorageError",
    "TransientRemoteError",
]
