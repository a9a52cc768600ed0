"""Compresses loop history into a bounded project-state summary."""

from __future__ import annotations

import logging

from sammy.agent.models import Message
from sammy.agent.prompts import SUMMARY_PROMPT_TEMPLATE, summary_request
from sammy.llm.client import ChatBackend

LOGGER = logging.getLogger(__name__)

# The context budget is shared between the summary, the log tails and the
# generation prompt; each gets at most 1/FAN_OUT of it.
FAN_OUT = 6
TRUNCATION_MARKER = " [...]"


def tail_length(context_length: int) -> int:
    """Characters of ProgressLog/ErrorLog fed to a single summarize call."""
    return max(1, round(context_length / FAN_OUT / 2))


def summary_limit(context_length: int) -> int:
    return max(len(TRUNCATION_MARKER) + 1, context_length // FAN_OUT)


def tail(text: str, length: int) -> str:
    return text[-length:] if length > 0 else ""


def bound_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    if max_chars <= len(TRUNCATION_MARKER):
        return text[:max_chars]
    return text[: max_chars - len(TRUNCATION_MARKER)].rstrip() + TRUNCATION_MARKER


class ContextSummarizer:
    """One backend call per outer iteration; output never exceeds ``max_chars``."""

    def __init__(self, backend: ChatBackend, *, max_chars: int) -> None:
        self.backend = backend
        self.max_chars = max_chars

    async def summarize(self, progress_tail: str, error_tail: str, previous_summary: str) -> str:
        reply = await self.backend.chat(
            [
                Message(
                    role="system",
                    content=SUMMARY_PROMPT_TEMPLATE.format(max_chars=self.max_chars),
                ),
                Message(
                    role="user",
                    content=summary_request(progress_tail, error_tail, previous_summary),
                ),
            ]
        )
        summary = reply.content.strip()
        if not summary:
            summary = previous_summary
        bounded = bound_text(summary, self.max_chars)
        if len(bounded) < len(summary):
            LOGGER.info(
                "summary_truncated",
                extra={"returned_chars": len(summary), "max_chars": self.max_chars},
            )
        return bounded
