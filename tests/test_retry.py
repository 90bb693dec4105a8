try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from resume_achievements.core.errors import (
    FatalRemoteError,
    RateLimitError,
    TransientRemoteError,
)
from resume_achievements.utils.retry import RetryConfig, call_with_retry


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedCall:
    """Raise the scripted errors in order, then return ``result``."""

    def __init__(self, errors, result: str = "ok") -> None:
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


@pytest.mark.asyncio
async def test_rate_limit_backs_off_exponentially_then_succeeds():
    sleep = RecordingSleep()
    call = ScriptedCall([RateLimitError("429"), RateLimitError("429")])

    result = await call_with_retry(call, operation="test", retry_config=RetryConfig(sleep=sleep))

    assert result == "ok"
    assert call.calls == 3
    assert sleep.delays == [2, 4]


@pytest.mark.asyncio
async def test_token_limit_is_not_retried():
    sleep = RecordingSleep()
    call = ScriptedCall([FatalRemoteError()])

    with pytest.raises(FatalRemoteError) as excinfo:
        await call_with_retry(call, operation="test", retry_config=RetryConfig(sleep=sleep))

    assert call.calls == 1
    assert sleep.delays == []
    assert excinfo.value.message.startswith("Request too large")


@pytest.mark.asyncio
async def test_generic_errors_back_off_linearly_and_propagate_wrapped():
    sleep = RecordingSleep()
    call = ScriptedCall([ValueError("boom")] * 3)

    with pytest.raises(TransientRemoteError) as excinfo:
        await call_with_retry(call, operation="summarize", retry_config=RetryConfig(sleep=sleep))

    assert call.calls == 3
    assert sleep.delays == [1, 2]
    assert "boom" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_last_remote_error_propagates_unchanged():
    sleep = RecordingSleep()
    final = RateLimitError("still limited")
    call = ScriptedCall([RateLimitError("a"), RateLimitError("b"), final])

    with pytest.raises(RateLimitError) as excinfo:
        await call_with_retry(call, operation="test", retry_config=RetryConfig(sleep=sleep))

    assert excinfo.value is final
    assert excinfo.value.can_retry is True
