try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import google.generativeai as genai
import pytest
from google.api_core.exceptions import InvalidArgument, NotFound, ResourceExhausted

from resume_achievements.clients import GeminiClient, GeminiModelError
from resume_achievements.clients.gemini import is_token_limit_message
from resume_achievements.core.config import GeminiSettings
from resume_achievements.core.errors import FatalRemoteError, RateLimitError


class FakeResponse:
    def __init__(self, text: str) -> None:
        self.text = text


def _install_model(monkeypatch, behaviour):
    created: list[dict] = []

    class FakeModel:
        def __init__(self, model_name, system_instruction=None):
            self.model_name = model_name
            created.append({"model": model_name, "system": system_instruction})

        def generate_content(self, prompt, **kwargs):
            return behaviour(self.model_name, prompt, kwargs)

    monkeypatch.setattr(genai, "configure", lambda **kwargs: None)
    monkeypatch.setattr(genai, "GenerativeModel", FakeModel)
    return created


def _client(**overrides) -> GeminiClient:
    settings = GeminiSettings(api_key="test-key", model_name="custom-model", **overrides)
    return GeminiClient(settings)


@pytest.mark.asyncio
async def test_generate_text_passes_system_prompt_and_config(monkeypatch):
    seen = {}

    def behaviour(model_name, prompt, kwargs):
        seen.update(kwargs)
        return FakeResponse("- Did the thing")

    created = _install_model(monkeypatch, behaviour)

    text = await _client(request_timeout_seconds=30).generate_text(
        "prompt", system_prompt="be brief", max_output_tokens=16
    )

    assert text == "- Did the thing"
    assert created == [{"model": "custom-model", "system": "be brief"}]
    assert seen["generation_config"]["max_output_tokens"] == 16
    assert seen["request_options"] == {"timeout": 30}


@pytest.mark.asyncio
async def test_missing_model_falls_back(monkeypatch):
    def behaviour(model_name, prompt, kwargs):
        if model_name == "custom-model":
            raise NotFound("no such model")
        return FakeResponse(f"from {model_name}")

    _install_model(monkeypatch, behaviour)

    assert await _client().generate_text("prompt") == "from gemini-1.5-flash"


@pytest.mark.asyncio
async def test_all_models_missing_raises_model_error(monkeypatch):
    def behaviour(model_name, prompt, kwargs):
        raise NotFound("no such model")

    _install_model(monkeypatch, behaviour)

    with pytest.raises(GeminiModelError) as excinfo:
        await _client().generate_text("prompt")
    assert "GEMINI_MODEL_NAME" in excinfo.value.message


@pytest.mark.asyncio
async def test_quota_errors_map_to_rate_limit(monkeypatch):
    def behaviour(model_name, prompt, kwargs):
        raise ResourceExhausted("quota exceeded")

    _install_model(monkeypatch, behaviour)

    with pytest.raises(RateLimitError):
        await _client().generate_text("prompt")


@pytest.mark.asyncio
async def test_token_limit_errors_are_fatal(monkeypatch):
    def behaviour(model_name, prompt, kwargs):
        raise InvalidArgument("The input token count exceeds the maximum")

    _install_model(monkeypatch, behaviour)

    with pytest.raises(FatalRemoteError):
        await _client().generate_text("prompt")


def test_token_limit_message_detection():
    assert is_token_limit_message("Request payload size exceeds the limit")
    assert not is_token_limit_message("Permission denied")
