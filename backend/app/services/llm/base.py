"""
Abstract base class for all LLM providers.

Each provider implements the API-specific translation layer.
Prompt assembly and fallback handling live in the RAG answer synthesizer.
"""

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Abstract base class for all LLM providers."""

    provider_name: str = "base"

    @abstractmethod
    async def chat(
        self,
        messages: list[dict],
        model: str,
        max_output_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> str:
        """
        Send a full message list (system prompt included) and return the reply.

        Args:
            messages: List of message dicts with "role" and "content"
            model: The API model identifier
            max_output_tokens: Maximum tokens in the response
            temperature: Sampling temperature

        Returns:
            Raw text response from the LLM

        Raises:
            SynthesisError: if the model returned no content
        """
        ...
