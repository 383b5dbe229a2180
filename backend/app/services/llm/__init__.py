"""
LLM Provider Abstraction Layer

Provides a unified interface for chat-completion providers with a small
model registry, so the answer synthesizer never talks to an SDK directly.
"""

from app.services.llm.base import LLMProvider
from app.services.llm.registry import MODEL_REGISTRY, get_provider

__all__ = [
    "LLMProvider",
    "MODEL_REGISTRY",
    "get_provider",
]
