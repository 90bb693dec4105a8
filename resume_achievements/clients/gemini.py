"""Client wrapper for interacting with Google Gemini models."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Iterable

import google.generativeai as genai
from google.api_core.exceptions import (
    GoogleAPICallError,
    InvalidArgument,
    NotFound,
    ResourceExhausted,
    TooManyRequests,
)

from resume_achievements.core.config import GeminiSettings
from resume_achievements.core.errors import (
    FatalRemoteError,
    RateLimitError,
    TransientRemoteError,
)


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-flash",
    "gemini-1.5-pro",
)

# Messages the API uses when a prompt is larger than the model accepts.
_TOKEN_LIMIT_PATTERN = re.compile(
    r"(tokens per min|token limit|token count|too many tokens|"
    r"exceeds the maximum|request payload size|payload too large|context length)",
    re.IGNORECASE,
)

logger = logging.getLogger(__name__)


class GeminiModelError(TransientRemoteError):
    """Raised when Gemini cannot fulfill a request due to configuration issues."""


class GeminiClient:
    """Thin async facade over the synchronous Gemini SDK."""

    def __init__(self, settings: GeminiSettings) -> None:
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    async def generate_text(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_output_tokens: int | None = None,
    ) -> str:
        """Produce a free-form text response using the configured model."""

        generation_config = {
            "temperature": self._settings.temperature,
            "max_output_tokens": max_output_tokens or self._settings.max_output_tokens,
        }

        def _invoke() -> str:
            response = self._invoke_with_models(
                models=self._text_model_candidates(),
                system_prompt=system_prompt,
                env_var="GEMINI_MODEL_NAME",
                error_prefix="Gemini generate_content failed",
                call=lambda model: model.generate_content(
                    prompt,
                    generation_config=generation_config,
                    safety_settings=[],
                    request_options={"timeout": self._settings.request_timeout_seconds},
                ),
            )
            return response.text or ""

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(_invoke),
                timeout=self._settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TransientRemoteError(
                "Gemini did not respond within "
                f"{self._settings.request_timeout_seconds:.0f}s"
            ) from exc

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        system_prompt: str | None,
        env_var: str,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(
                model_name, system_instruction=system_prompt or None
            )
            try:
                return call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except (ResourceExhausted, TooManyRequests) as exc:  # pragma: no cover
                raise RateLimitError(f"{error_prefix}: {exc.message}") from exc
            except InvalidArgument as exc:  # pragma: no cover - network call
                if is_token_limit_message(exc.message):
                    raise FatalRemoteError() from exc
                raise GeminiModelError(f"{error_prefix}: {exc.message}") from exc
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                if is_token_limit_message(exc.message):
                    raise FatalRemoteError() from exc
                raise TransientRemoteError(f"{error_prefix}: {exc.message}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update "
                f"{env_var} to a supported value."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        return self._collect_candidates(
            self._settings.model_name,
            _TEXT_FALLBACKS,
        )

    @staticmethod
    def _collect_candidates(
        configured: str | None,
        fallbacks: tuple[str, ...],
    ) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (configured, *fallbacks):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def is_token_limit_message(message: str) -> bool:
    """Return whether an error message describes an oversized request."""
    return bool(_TOKEN_LIMIT_PATTERN.search(message or ""))


__all__ = ["GeminiClient", "GeminiModelError", "is_token_limit_message"]
