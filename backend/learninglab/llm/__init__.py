"""
LLM Gateway Package

Text generation behind one small interface, used by the summarizer and the
answer stage:

    from learninglab.llm import get_text_generator

    generator = get_text_generator()
    summary = await generator.summarize(text)
    answer  = await generator.answer(final_prompt)

Without an OpenAI key the factory returns UnavailableTextGenerator, which
raises GenerationUnavailable; callers fall back to placeholders.
"""

from learninglab.llm.gateway import (
    GatewayResponse,
    LLMGateway,
    TextGenerator,
    UnavailableTextGenerator,
    get_text_generator,
)

__all__ = [
    "GatewayResponse",
    "LLMGateway",
    "TextGenerator",
    "UnavailableTextGenerator",
    "get_text_generator",
]
