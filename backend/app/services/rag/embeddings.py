"""
Embedding Generator

Turns text into a fixed-length vector with OpenAI text-embedding-3-small
(1536 dimensions). Queries and ingested syllabus chunks must go through the
same model, otherwise cosine similarity between them is meaningless.

No retries happen here. A failed or timed-out call raises ServiceUnavailable
and the caller decides whether to skip retrieval or abort.
"""

import logging

from langchain_openai import OpenAIEmbeddings

from app.core.config import get_settings
from app.core.exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)


# ── Singleton: embeddings client ──────────────────────────────────────────────

_embeddings: OpenAIEmbeddings | None = None


def _get_embeddings() -> OpenAIEmbeddings:
    """
    Get or create the embeddings client.

    Built on first use so a missing API key only affects the code paths
    that actually need embeddings.
    """
    global _embeddings
    if _embeddings is not None:
        return _embeddings

    settings = get_settings()
    if not settings.openai_api_key:
        raise ServiceUnavailable("OPENAI_API_KEY is not configured")

    _embeddings = OpenAIEmbeddings(
        model=settings.openai_embedding_model,
        openai_api_key=settings.openai_api_key,
        request_timeout=settings.model_timeout_seconds,
        max_retries=0,
    )
    return _embeddings


async def embed(text: str) -> list[float]:
    """Embed a single piece of text (a student question or search query)."""
    if not text or not text.strip():
        raise ValueError("Cannot embed empty text")

    client = _get_embeddings()
    try:
        return await client.aembed_query(text)
    except Exception as e:
        logger.warning("[RAG] Embedding request failed: %s", e)
        raise ServiceUnavailable(f"Embedding request failed: {e}") from e


async def embed_documents(texts: list[str]) -> list[list[float]]:
    """Embed a batch of syllabus chunks during ingestion."""
    if not texts:
        return []

    client = _get_embeddings()
    try:
        return await client.aembed_documents(texts)
    except Exception as e:
        logger.warning("[RAG] Batch embedding of %d chunks failed: %s", len(texts), e)
        raise ServiceUnavailable(f"Embedding request failed: {e}") from e
