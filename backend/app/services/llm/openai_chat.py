"""
OpenAI Chat Completions API Provider

Handles GPT-4-turbo, GPT-4o and other Chat Completions API models:
- client.chat.completions.create()
- messages (not input)
- response.choices[0].message.content
"""

from openai import AsyncOpenAI

from app.core.config import get_settings
from app.core.exceptions import SynthesisError
from app.services.llm.base import LLMProvider


class OpenAIChatProvider(LLMProvider):
    """Provider for OpenAI Chat Completions API."""

    provider_name = "openai_chat"

    def __init__(self):
        settings = get_settings()
        # Retries are left to callers; one slow attempt is bounded by the timeout
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.model_timeout_seconds,
            max_retries=0,
        )

    async def chat(
        self,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_completion_tokens=max_output_tokens,
            temperature=temperature,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise SynthesisError("Empty response from OpenAI Chat Completions API")
        return content
