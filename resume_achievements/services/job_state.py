"""Per-connection job state with cooperative cancellation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from resume_achievements.core.errors import JobAlreadyRunningError

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    NONE = "none"
    PROCESSING = "processing"
    REPROCESSING = "reprocessing"


@dataclass(slots=True)
class JobState:
    """Mutable state for the single pipeline a connection may run.

    ``can_cancel`` is only ever true while ``is_processing`` is true.
    """

    session_id: str
    is_processing: bool = False
    can_cancel: bool = False
    current_operation: Operation = Operation.NONE
    run_id: int = 0

    def start(self, operation: Operation) -> int:
        """Enter the running state and return a token identifying this run."""
        if self.is_processing:
            raise JobAlreadyRunningError(
                "A processing run is already in progress for this connection."
            )
        self.run_id += 1
        self.is_processing = True
        self.can_cancel = True
        self.current_operation = operation
        return self.run_id

    def is_active(self, run_id: int) -> bool:
        """Whether run ``run_id`` should keep going."""
        return self.is_processing and self.run_id == run_id

    def cancel(self) -> bool:
        """Request cancellation; return whether a cancellable run existed."""
        if not (self.is_processing and self.can_cancel):
            return False
        self.is_processing = False
        self.can_cancel = False
        return True

    def finish(self, run_id: int | None = None) -> None:
        if run_id is not None and run_id != self.run_id:
            return
        self.is_processing = False
        self.can_cancel = False
        self.current_operation = Operation.NONE


class JobRegistry:
    """Process-wide map of connection id to ``JobState``."""

    def __init__(self) -> None:
        self._states: dict[str, JobState] = {}

    def initialize(self, connection_id: str, session_id: str) -> JobState:
        state = JobState(session_id=session_id)
        self._states[connection_id] = state
        return state

    def get(self, connection_id: str) -> JobState | None:
        return self._states.get(connection_id)

    def require(self, connection_id: str, session_id: str) -> JobState:
        state = self._states.get(connection_id)
        if state is None:
            state = self.initialize(connection_id, session_id)
        return state

    def cancel(self, connection_id: str) -> bool:
        state = self._states.get(connection_id)
        if state is None:
            return False
        cancelled = state.cancel()
        if cancelled:
            logger.info("Cancellation requested", extra={"connection_id": connection_id})
        return cancelled

    def remove(self, connection_id: str) -> None:
        self._states.pop(connection_id, None)

    def __len__(self) -> int:
        return len(self._states)


__all__ = ["JobRegistry", "JobState", "Operation"]
