"""
Summarizer — one generation call, never fails the job.

On any error (timeout, provider error, no backend configured) the summary
becomes a deterministic placeholder built from the first characters of
the text:

    Summary placeholder for text: <first N chars>...
"""

from __future__ import annotations

import logging

from learninglab.core.config import settings
from learninglab.llm.gateway import TextGenerator

logger = logging.getLogger(__name__)

SUMMARY_PLACEHOLDER_PREFIX = "Summary placeholder"


def placeholder_summary(text: str, preview_chars: int | None = None) -> str:
    n = settings.summary_preview_chars if preview_chars is None else preview_chars
    return f"{SUMMARY_PLACEHOLDER_PREFIX} for text: {text[:n]}..."


class Summarizer:

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def summarize(self, text: str) -> str:
        if not text.strip():
            return placeholder_summary(text)

        try:
            summary = (await self._generator.summarize(text)).strip()
        except Exception as exc:
            logger.warning("Summarization failed, using placeholder | error=%s", exc)
            return placeholder_summary(text)

        if not summary:
            logger.warning("Summarization returned empty text, using placeholder")
            return placeholder_summary(text)
        return summary
