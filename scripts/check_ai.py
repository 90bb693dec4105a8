#!/usr/bin/env python
"""Check the configured Gemini model the same way the service does."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from resume_achievements.clients import GeminiClient  # noqa: E402
from resume_achievements.core.config import get_settings  # noqa: E402
from resume_achievements.core.errors import PipelineError  # noqa: E402
from resume_achievements.services.summarizer import RemoteSummarizer  # noqa: E402


async def _check(model_name: str | None, message: str | None) -> int:
    settings = get_settings().gemini
    if not settings.enabled:
        print("GEMINI_API_KEY is not set; the service would run in degraded mode.")
        return 1
    if model_name:
        settings = settings.model_copy(update={"model_name": model_name})
    client = GeminiClient(settings)

    if message:
        try:
            reply = await client.generate_text(message)
        except PipelineError as exc:
            print(f"Request failed: {exc.message}")
            return 1
        print(f"Gemini: {reply or '(no text response)'}")
        return 0

    working = await RemoteSummarizer(client).test_connectivity()
    print(f"Model {settings.model_name}: {'working' if working else 'not responding'}")
    return 0 if working else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check Gemini connectivity or send a single prompt."
    )
    parser.add_argument(
        "message",
        nargs="?",
        help="Prompt to send. If omitted, the connectivity check runs.",
    )
    parser.add_argument(
        "--model",
        dest="model",
        default=None,
        help="Optional override for the Gemini model name.",
    )

    args = parser.parse_args(argv)
    return asyncio.run(_check(args.model, args.message))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
