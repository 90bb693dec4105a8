"""Expose constructed client wrappers."""

from .gemini import GeminiClient, GeminiModelError

__all__ = [
    "GeminiClient",
    "GeminiModelError",
]
