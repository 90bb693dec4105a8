try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from resume_achievements.core.errors import JobAlreadyRunningError
from resume_achievements.services.job_state import JobRegistry, JobState, Operation


def test_start_rejects_a_second_run():
    state = JobState(session_id="s1")

    state.start(Operation.PROCESSING)

    with pytest.raises(JobAlreadyRunningError):
        state.start(Operation.REPROCESSING)
    assert state.current_operation is Operation.PROCESSING


def test_cancel_is_synchronous_and_only_once():
    state = JobState(session_id="s1")
    run_id = state.start(Operation.PROCESSING)

    assert state.cancel() is True
    assert state.is_processing is False
    assert state.can_cancel is False
    assert state.is_active(run_id) is False
    assert state.cancel() is False


def test_stale_finish_does_not_end_newer_run():
    state = JobState(session_id="s1")
    first = state.start(Operation.PROCESSING)
    state.cancel()
    second = state.start(Operation.PROCESSING)

    state.finish(first)

    assert state.is_active(second)
    state.finish(second)
    assert state.is_processing is False
    assert state.current_operation is Operation.NONE


def test_registry_lifecycle():
    jobs = JobRegistry()

    assert jobs.cancel("missing") is False

    state = jobs.initialize("conn-1", "s1")
    assert jobs.require("conn-1", "other") is state
    state.start(Operation.PROCESSING)
    assert jobs.cancel("conn-1") is True
    assert jobs.cancel("conn-1") is False

    jobs.remove("conn-1")
    jobs.remove("conn-1")
    assert jobs.get("conn-1") is None
    assert len(jobs) == 0
