"""
LLM Gateway — Generative-Text Capability

Single call site for every generation the service makes:

  ┌─────────────────────────────────────────────┐
  │  TextGenerator.summarize(text)              │  ← Summarizer
  │  TextGenerator.answer(final_prompt)         │  ← AnswerService
  │       │                                     │
  │       ▼                                     │
  │  complete(system_prompt, user_content)      │
  │       │                                     │
  │       ▼                                     │
  │  ChatOpenAI.ainvoke (bounded by timeout)    │
  └─────────────────────────────────────────────┘

When no API key is configured the factory returns UnavailableTextGenerator,
which raises GenerationUnavailable; callers fall back to their placeholders.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from learninglab.core.config import settings
from learninglab.core.exceptions import GenerationUnavailable

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You summarize documents for a learning platform. "
    "Reply with a concise summary of the text in at most five sentences."
)
ANSWER_SYSTEM_PROMPT = (
    "Answer the query using only the supplied context. "
    "If the context does not contain the answer, say so."
)


@dataclass
class GatewayResponse:
    """The result of a single LLM call."""
    content:    str
    model_used: str
    latency_ms: float


def build_messages(system_prompt: str, user_content: str) -> list[BaseMessage]:
    """Standard [SystemMessage, HumanMessage] list."""
    return [
        SystemMessage(content=system_prompt),
        HumanMessage(content=user_content),
    ]


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class TextGenerator(ABC):

    @abstractmethod
    async def complete(self, system_prompt: str, user_content: str) -> GatewayResponse:
        ...

    async def summarize(self, text: str) -> str:
        response = await self.complete(SUMMARY_SYSTEM_PROMPT, text)
        return response.content

    async def answer(self, prompt: str) -> str:
        response = await self.complete(ANSWER_SYSTEM_PROMPT, prompt)
        return response.content


class UnavailableTextGenerator(TextGenerator):
    """Stand-in when no LLM backend is configured."""

    async def complete(self, system_prompt: str, user_content: str) -> GatewayResponse:
        raise GenerationUnavailable("No generative-text backend configured")


# ---------------------------------------------------------------------------
# LangChain / OpenAI implementation
# ---------------------------------------------------------------------------

class LLMGateway(TextGenerator):
    """
    ChatOpenAI behind a hard timeout.

    Instantiate once per process; ChatOpenAI is safe for concurrent use.
    """

    def __init__(self, llm: ChatOpenAI | None = None, timeout_seconds: float | None = None) -> None:
        self._llm = llm or ChatOpenAI(
            model=settings.llm_model,
            api_key=settings.openai_api_key,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            max_retries=1,
        )
        self._timeout = timeout_seconds or settings.llm_timeout_seconds

    @property
    def model_name(self) -> str:
        return getattr(self._llm, "model_name", settings.llm_model)

    async def complete(self, system_prompt: str, user_content: str) -> GatewayResponse:
        messages = build_messages(system_prompt, user_content)

        t0 = time.perf_counter()
        try:
            result = await asyncio.wait_for(self._llm.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationUnavailable(f"LLM call exceeded {self._timeout:.0f}s") from exc
        latency = (time.perf_counter() - t0) * 1000

        content = result.content if isinstance(result.content, str) else str(result.content)
        logger.info(
            "LLMGateway | model=%s chars_in=%d chars_out=%d latency_ms=%.1f",
            self.model_name, len(user_content), len(content), latency,
        )
        return GatewayResponse(content=content, model_used=self.model_name, latency_ms=latency)


def get_text_generator() -> TextGenerator:
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set | generation will use placeholders")
        return UnavailableTextGenerator()
    return LLMGateway()
