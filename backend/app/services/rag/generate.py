"""
Answer Synthesizer

Sends the assembled prompt to the configured chat model and attaches
citations for the syllabus chunks that went into it.

A chat turn must always get an answer, so model errors, timeouts and
empty completions come back as a degraded Outcome carrying a fixed
apology instead of an exception.
"""

import asyncio
import logging

from openai import OpenAIError

from app.core.config import get_settings
from app.core.exceptions import AppError
from app.services.llm.registry import get_provider
from app.services.outcome import Outcome
from app.services.rag.context import to_sources
from app.services.rag.models import SearchResult, SynthesizedAnswer

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = (
    "I apologize, but I was unable to generate a response. Please try again."
)


async def synthesize(
    messages: list[dict],
    results: list[SearchResult],
) -> Outcome[SynthesizedAnswer]:
    """
    Generate an answer for an assembled prompt.

    Args:
        messages: Output of context.build_messages
        results: The search results embedded in the prompt

    Returns:
        Outcome with the answer and its sources. On failure the outcome is
        degraded and the answer is FALLBACK_ANSWER. Sources are always the
        results that went into the prompt.
    """
    settings = get_settings()

    try:
        provider, api_model = get_provider(settings.openai_chat_model)
        answer = await asyncio.wait_for(
            provider.chat(
                messages=messages,
                model=api_model,
                max_output_tokens=settings.chat_max_tokens,
                temperature=settings.chat_temperature,
            ),
            timeout=settings.model_timeout_seconds,
        )
    except (AppError, OpenAIError, asyncio.TimeoutError, ValueError) as e:
        reason = getattr(e, "detail", None) or str(e) or type(e).__name__
        logger.warning("[LLM] Synthesis failed, returning fallback answer: %s", reason)
        return Outcome.fallback(
            SynthesizedAnswer(answer=FALLBACK_ANSWER, sources=to_sources(results)),
            reason=reason,
        )

    logger.info(
        "[LLM] model=%s provider=%s answer_chars=%d",
        api_model, provider.provider_name, len(answer),
    )
    return Outcome.ok(SynthesizedAnswer(answer=answer.strip(), sources=to_sources(results)))
