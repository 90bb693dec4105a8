"""Retry/backoff semantics for calls to the text-generation backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from resume_achievements.core.errors import (
    FatalRemoteError,
    RateLimitError,
    TransientRemoteError,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    """Attempt budget and delay schedule.

    Rate-limited attempts wait ``rate_limit_base ** attempt`` seconds; any other
    failure waits ``backoff_seconds * attempt``.
    """

    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        rate_limit_base: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.rate_limit_base = rate_limit_base
        self.sleep = sleep

    def delay_for(self, attempt: int, exc: Exception) -> float:
        if isinstance(exc, RateLimitError):
            return self.rate_limit_base**attempt
        return self.backoff_seconds * attempt


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    operation: str,
    retry_config: RetryConfig | None = None,
) -> T:
    """Invoke ``func`` until it succeeds or the attempt budget runs out.

    ``FatalRemoteError`` is raised on first sight. After the final attempt the
    last error propagates; errors that are not already part of the remote
    taxonomy are wrapped in ``TransientRemoteError``.
    """
    config = retry_config or RetryConfig()
    last_exception: Exception | None = None

    for attempt in range(1, config.attempts + 1):
        try:
            return await func()
        except FatalRemoteError:
            logger.warning("%s rejected as too large; not retrying", operation)
            raise
        except Exception as exc:  # noqa: BLE001 - classified below
            last_exception = exc
            if attempt >= config.attempts:
                break
            delay = config.delay_for(attempt, exc)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                operation,
                attempt,
                config.attempts,
                exc,
                delay,
            )
            await config.sleep(delay)

    if last_exception is None:
        raise RuntimeError(f"{operation} failed without raising an exception")
    if isinstance(last_exception, TransientRemoteError):
        raise last_exception
    raise TransientRemoteError(
        f"{operation} failed after {config.attempts} attempts: {last_exception}"
    ) from last_exception


__all__ = ["RetryConfig", "call_with_retry"]
