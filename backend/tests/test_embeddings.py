"""
Tests for the embedding generator.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from app.core.exceptions import ServiceUnavailable
from app.services.rag import embeddings


@pytest.fixture
def embeddings_client(monkeypatch):
    client = Mock()
    client.aembed_query = AsyncMock(side_effect=lambda text: [float(len(text)), 1.0, 0.0])
    client.aembed_documents = AsyncMock(
        side_effect=lambda texts: [[float(len(t)), 1.0, 0.0] for t in texts]
    )
    monkeypatch.setattr(embeddings, "_embeddings", client)
    return client


class TestEmbed:

    @pytest.mark.asyncio
    async def test_returns_vector(self, embeddings_client):
        vector = await embeddings.embed("binary search")

        assert vector == [13.0, 1.0, 0.0]
        embeddings_client.aembed_query.assert_awaited_once_with("binary search")

    @pytest.mark.asyncio
    async def test_same_text_same_vector(self, embeddings_client):
        assert await embeddings.embed("stack") == await embeddings.embed("stack")

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, embeddings_client):
        with pytest.raises(ValueError):
            await embeddings.embed("   ")
        embeddings_client.aembed_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_failure_raises_service_unavailable(self, embeddings_client):
        embeddings_client.aembed_query.side_effect = TimeoutError("read timed out")

        with pytest.raises(ServiceUnavailable):
            await embeddings.embed("queues")

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_on_first_use(self, monkeypatch):
        monkeypatch.setattr(embeddings, "_embeddings", None)

        with pytest.raises(ServiceUnavailable):
            await embeddings.embed("queues")


class TestEmbedDocuments:

    @pytest.mark.asyncio
    async def test_batch(self, embeddings_client):
        vectors = await embeddings.embed_documents(["a", "bb"])
        assert vectors == [[1.0, 1.0, 0.0], [2.0, 1.0, 0.0]]

    @pytest.mark.asyncio
    async def test_empty_batch_skips_model(self, embeddings_client):
        assert await embeddings.embed_documents([]) == []
        embeddings_client.aembed_documents.assert_not_awaited()
