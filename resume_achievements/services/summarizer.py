"""Service that turns batches of work items into resume achievements via Gemini."""

from __future__ import annotations

import logging
import re
from textwrap import dedent
from typing import Protocol

from resume_achievements.utils.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)

_BULLET_PREFIX = re.compile(r"^[\s\-\*•]+")

SYSTEM_PROMPT = dedent(
    """\
    You are an expert resume writer. You turn raw work-tracking records
    (tickets, epics, stories, bugs) into concise, results-oriented resume
    achievements. Each achievement starts with a strong action verb, names the
    concrete contribution and, where the data supports it, the impact. Never
    invent metrics that are not present in the input. Output one achievement
    per line with no numbering, headings or commentary."""
)

BATCH_PROMPT_TEMPLATE = dedent(
    """\
    Below are work items exported from an issue tracker. Convert them into
    resume achievement bullet points. Group closely related items into a single
    achievement where it reads better, and skip items with no meaningful
    contribution.
    {user_instructions}
    Work items:
    {batch}"""
)

USER_INSTRUCTIONS_TEMPLATE = dedent(
    """
    Additional instructions from the user (follow them unless they conflict with
    the output format):
    {instruction}
    """
)

DEDUPLICATION_PROMPT_TEMPLATE = dedent(
    """\
    The following achievement lists were produced from separate parts of the
    same dataset. Merge them into one list: remove exact and near duplicates,
    combine achievements that describe the same work, and keep the strongest
    wording. Return one achievement per line.

    Achievements:
    {achievements}"""
)

REFINEMENT_PROMPT_TEMPLATE = dedent(
    """\
    Rework the following resume achievements according to the instructions.
    Return only the revised achievements, one per line.

    Instructions:
    {instruction}

    Achievements:
    {achievements}"""
)

CONNECTIVITY_PHRASE = "AI service is working"


class TextGenerator(Protocol):
    async def generate_text(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_output_tokens: int | None = None,
    ) -> str: ...


def parse_items(text: str) -> list[str]:
    """Split model output into achievement lines without bullet markers."""
    items = []
    for line in (text or "").splitlines():
        cleaned = _BULLET_PREFIX.sub("", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


def preview_lines(text: str, limit: int = 3) -> list[str]:
    """Return the first ``limit`` non-blank lines of ``text`` as-is."""
    return [line for line in (text or "").splitlines() if line.strip()][:limit]


class RemoteSummarizer:
    """Prompt construction and retrying calls for the three summarization steps."""

    def __init__(
        self,
        generator: TextGenerator,
        *,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._generator = generator
        self._retry = retry_config or RetryConfig()

    async def summarize_batch(self, formatted_batch: str, user_instruction: str | None = None) -> str:
        prompt = build_batch_prompt(formatted_batch, user_instruction)
        return await self._complete(prompt, operation="summarize_batch")

    async def deduplicate_merged(self, merged_text: str) -> str:
        prompt = DEDUPLICATION_PROMPT_TEMPLATE.format(achievements=merged_text)
        return await self._complete(prompt, operation="deduplicate_merged")

    async def refine_selection(self, selected_items_text: str, refinement_instruction: str) -> str:
        prompt = REFINEMENT_PROMPT_TEMPLATE.format(
            instruction=refinement_instruction.strip(),
            achievements=selected_items_text,
        )
        return await self._complete(prompt, operation="refine_selection")

    async def test_connectivity(self) -> bool:
        """Round-trip a fixed phrase; any failure means 'not working'."""
        try:
            reply = await self._generator.generate_text(
                f"Say '{CONNECTIVITY_PHRASE}' in exactly those words.",
                max_output_tokens=16,
            )
        except Exception:  # noqa: BLE001 - the check must never raise
            logger.warning("AI connectivity check failed", exc_info=True)
            return False
        return CONNECTIVITY_PHRASE.lower() in (reply or "").lower()

    async def _complete(self, prompt: str, *, operation: str) -> str:
        async def _call() -> str:
            reply = await self._generator.generate_text(prompt, system_prompt=SYSTEM_PROMPT)
            return (reply or "").strip()

        return await call_with_retry(_call, operation=operation, retry_config=self._retry)


def build_batch_prompt(formatted_batch: str, user_instruction: str | None) -> str:
    instructions = ""
    if user_instruction and user_instruction.strip():
        instructions = USER_INSTRUCTIONS_TEMPLATE.format(instruction=user_instruction.strip())
    return BATCH_PROMPT_TEMPLATE.format(user_instructions=instructions, batch=formatted_batch)


__all__ = [
    "RemoteSummarizer",
    "TextGenerator",
    "build_batch_prompt",
    "parse_items",
    "preview_lines",
]
