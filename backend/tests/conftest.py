"""
Shared fixtures.

Environment is set before any app module is imported so the cached
Settings point at an in-memory SQLite database and have no external
services configured.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["OPENAI_API_KEY"] = ""
os.environ["REDIS_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import chromadb
import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.user import User
from app.services import rate_limit
from app.services.llm.base import LLMProvider
from app.services.rag import generate, retriever
from app.services.rate_limit import RateLimiter


# ── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(session_factory):
    async with session_factory() as session:
        u = User(email="student@example.com")
        session.add(u)
        await session.commit()
        return u


@pytest_asyncio.fixture
async def other_user(session_factory):
    async with session_factory() as session:
        u = User(email="someone-else@example.com")
        session.add(u)
        await session.commit()
        return u


def auth_headers_for(u: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(u.id)}"}


@pytest.fixture
def auth_headers(user):
    return auth_headers_for(user)


@pytest.fixture
def other_auth_headers(other_user):
    return auth_headers_for(other_user)


# ── External services ────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def fake_redis():
    # Own server per test; default fakeredis clients share state by host/port
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    yield client
    await client.aclose()


@pytest.fixture
def limiter(fake_redis, monkeypatch):
    """Redis-backed limiter installed as the app-wide singleton."""
    instance = RateLimiter(fake_redis)
    monkeypatch.setattr(rate_limit, "_limiter", instance)
    return instance


@pytest.fixture
def syllabus_collection(monkeypatch):
    """Fresh in-memory Chroma collection used by the retriever."""
    client = chromadb.EphemeralClient()
    collection = client.create_collection(
        f"test-{uuid.uuid4().hex}",
        metadata={"hnsw:space": "cosine"},
        embedding_function=None,
    )
    monkeypatch.setattr(
        retriever, "_rag_store", SimpleNamespace(client=client, collection=collection)
    )
    return collection


@pytest.fixture
def fake_embed(monkeypatch):
    """
    Replace the embedding call used by the retriever.

    Texts listed in `vectors` map to fixed vectors, anything else embeds
    to the default direction.
    """
    vectors: dict[str, list[float]] = {}
    default = [1.0, 0.0, 0.0]

    async def _embed(text: str) -> list[float]:
        return vectors.get(text, default)

    mock = AsyncMock(side_effect=_embed)
    mock.vectors = vectors
    monkeypatch.setattr(retriever, "embed", mock)
    return mock


class FakeProvider(LLMProvider):
    provider_name = "fake"

    def __init__(self, reply: str = "Dijkstra's algorithm finds shortest paths."):
        self.reply = reply
        self.chat_mock = AsyncMock(return_value=reply)

    async def chat(self, messages, model, max_output_tokens=2000, temperature=0.7):
        return await self.chat_mock(
            messages=messages,
            model=model,
            max_output_tokens=max_output_tokens,
            temperature=temperature,
        )


@pytest.fixture
def fake_provider(monkeypatch):
    provider = FakeProvider()
    monkeypatch.setattr(generate, "get_provider", lambda model_id: (provider, model_id))
    return provider


# ── HTTP client ──────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
