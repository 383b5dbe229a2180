"""
RAG Retriever Service

Queries the ChromaDB vector store for syllabus chunks that are semantically
similar to a student's question.

Uses the chromadb client directly (not langchain_chroma) so results come back
as raw dicts with distances, which we need for the similarity threshold.

How retrieval works:
1. The question is converted into a vector with the embedding generator.
2. ChromaDB compares it against stored chunk vectors in one query
   (the collection is created in cosine space, so similarity = 1 - distance).
3. If a course filter is given, only that course's chunks are searched.
4. Chunks below the similarity threshold are dropped and the top matches
   are returned best-first.
"""

import asyncio
import logging
import os
from types import SimpleNamespace

import chromadb

from app.core.config import get_settings
from app.core.exceptions import RetrievalError, ServiceUnavailable
from app.services.outcome import Outcome
from app.services.rag.embeddings import embed
from app.services.rag.models import ChunkMetadata, SearchResult, SyllabusChunk

logger = logging.getLogger(__name__)


# ── Singleton: chromadb client + collection ───────────────────────────────────

_rag_store: SimpleNamespace | None = None


def _open_store() -> SimpleNamespace:
    settings = get_settings()
    client = chromadb.PersistentClient(path=settings.chroma_persist_dir)
    collection = client.get_or_create_collection(
        settings.chroma_collection,
        metadata={"hnsw:space": "cosine"},
        # Vectors always come from the embedding generator
        embedding_function=None,
    )
    return SimpleNamespace(client=client, collection=collection)


def _get_collection():
    """
    Get or create the ChromaDB collection handle.

    Raises RetrievalError when the store has not been initialised or
    cannot be opened.
    """
    global _rag_store
    if _rag_store is not None:
        return _rag_store.collection

    settings = get_settings()
    if not os.path.exists(settings.chroma_persist_dir):
        raise RetrievalError("Syllabus index not initialized. Run ingestion first.")

    try:
        _rag_store = _open_store()
    except Exception as e:
        logger.error("[RAG] Failed to load ChromaDB: %s", e)
        raise RetrievalError(f"Failed to load syllabus index: {e}") from e

    logger.info("[RAG] ChromaDB loaded: %d chunks available", _rag_store.collection.count())
    return _rag_store.collection


def reset_collection():
    """Drop and recreate the syllabus collection (full re-ingest)."""
    global _rag_store
    settings = get_settings()
    os.makedirs(settings.chroma_persist_dir, exist_ok=True)

    store = _rag_store or _open_store()
    try:
        store.client.delete_collection(settings.chroma_collection)
    except Exception:
        logger.info("[RAG] No existing collection to drop")

    _rag_store = None
    _rag_store = _open_store()
    return _rag_store.collection


def get_vector_store_status() -> dict:
    """Return status info about the vector store for the /rag/status endpoint."""
    settings = get_settings()
    persist_dir = os.path.abspath(settings.chroma_persist_dir)

    try:
        collection = _get_collection()
    except RetrievalError as e:
        return {
            "available": False,
            "chunk_count": 0,
            "persist_dir": persist_dir,
            "message": e.detail,
        }

    count = collection.count()

    try:
        all_meta = collection.get(include=["metadatas"])
        courses = sorted(set(
            str((m or {}).get("course_id", "unknown"))
            for m in all_meta["metadatas"]
        ))
    except Exception as e:
        logger.warning("[RAG] Could not list course ids: %s", e)
        courses = []

    return {
        "available": True,
        "chunk_count": count,
        "courses": courses,
        "persist_dir": persist_dir,
    }


# ── Writes (ingestion) ───────────────────────────────────────────────────────

def _chunk_metadata(chunk: SyllabusChunk) -> dict:
    # Chroma rejects None metadata values
    meta = {"course_id": chunk.course_id}
    meta.update(chunk.metadata.model_dump(exclude_none=True))
    return meta


def add_chunks(chunks: list[SyllabusChunk], embeddings: list[list[float]]) -> int:
    """Store pre-embedded syllabus chunks. Returns the number written."""
    if len(chunks) != len(embeddings):
        raise ValueError("Each chunk needs exactly one embedding")
    if not chunks:
        return 0

    collection = _get_collection()
    collection.add(
        ids=[c.id for c in chunks],
        documents=[c.content for c in chunks],
        embeddings=embeddings,
        metadatas=[_chunk_metadata(c) for c in chunks],
    )
    return len(chunks)


# ── Retrieval ────────────────────────────────────────────────────────────────

def _to_similarity(distance: float) -> float:
    return max(0.0, min(1.0, 1.0 - float(distance)))


async def search(
    query_vector: list[float],
    course_id: str | None = None,
    match_count: int = 5,
    match_threshold: float = 0.7,
) -> list[SearchResult]:
    """
    Find the syllabus chunks most similar to a query vector.

    Args:
        query_vector: Embedding of the question
        course_id: Optional course to restrict the search to
        match_count: Maximum number of results
        match_threshold: Minimum similarity (0.0-1.0) a chunk must reach

    Returns:
        At most match_count results with similarity >= match_threshold,
        best first. Empty when nothing clears the threshold.

    Raises:
        RetrievalError: the vector store is unavailable or the query failed
    """
    if match_count < 1:
        raise ValueError("match_count must be at least 1")
    if not 0.0 <= match_threshold <= 1.0:
        raise ValueError("match_threshold must be between 0 and 1")

    collection = _get_collection()

    where_filter = {"course_id": course_id} if course_id else None

    try:
        total = await asyncio.to_thread(collection.count)
        if total == 0:
            return []
        result = await asyncio.to_thread(
            collection.query,
            query_embeddings=[query_vector],
            n_results=min(match_count, total),
            where=where_filter,
            include=["documents", "metadatas", "distances"],
        )
    except Exception as e:
        logger.warning("[RAG] Vector search failed: %s", e)
        raise RetrievalError(f"Vector search failed: {e}") from e

    # result["ids"] = [[id1, id2, ...]], one inner list per query embedding
    ids = result["ids"][0] if result.get("ids") else []
    docs = result["documents"][0] if result.get("documents") else []
    metas = result["metadatas"][0] if result.get("metadatas") else []
    distances = result["distances"][0] if result.get("distances") else []

    matches = []
    for chunk_id, text, meta, distance in zip(ids, docs, metas, distances):
        similarity = _to_similarity(distance)
        if similarity < match_threshold:
            continue
        meta = meta or {}
        matches.append(
            SearchResult(
                id=chunk_id,
                content=(text or "").strip(),
                similarity=similarity,
                metadata=ChunkMetadata(
                    module_number=meta.get("module_number"),
                    topic=meta.get("topic"),
                    source=meta.get("source"),
                ),
            )
        )

    # Stable sort keeps index order for equal scores
    matches.sort(key=lambda r: r.similarity, reverse=True)
    return matches[:match_count]


async def search_syllabus(
    query: str,
    course_id: str | None = None,
    match_count: int | None = None,
    match_threshold: float | None = None,
) -> Outcome[list[SearchResult]]:
    """
    Embed a question and search the syllabus for it.

    Embedding or search failures are not raised: the outcome is marked
    degraded with an empty result list so the caller answers without
    syllabus context.
    """
    settings = get_settings()
    if match_count is None:
        match_count = settings.match_count
    if match_threshold is None:
        match_threshold = settings.match_threshold

    try:
        query_vector = await embed(query)
        results = await search(query_vector, course_id, match_count, match_threshold)
    except (ServiceUnavailable, RetrievalError) as e:
        logger.warning("[RAG] Retrieval degraded, continuing without context: %s", e.detail)
        return Outcome.fallback([], reason=e.detail)

    logger.info("[RAG] Retrieved %d chunks (course=%s)", len(results), course_id or "any")
    return Outcome.ok(results)
