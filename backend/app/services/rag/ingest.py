"""
Syllabus Document Ingestion

Loads syllabus documents (PDF, DOCX) from the syllabus_docs/ directory,
splits them into chunks, embeds them using OpenAI, and stores them in ChromaDB.

How it works:
1. LOAD   – LangChain document loaders read raw files into Document objects
2. TAG    – Metadata (course_id, module_number, topic) extracted from folder/filename
3. SPLIT  – RecursiveCharacterTextSplitter breaks docs into ~500-char chunks
4. EMBED  – The embedding generator converts each chunk to a vector
           (same model as query embedding, so similarities are comparable)
5. STORE  – Chunks + vectors + metadata written to the syllabus collection

Expected layout:
    syllabus_docs/<COURSE_ID>/<anything>_Module_3_<Topic_Words>.pdf

Usage:
    cd backend
    python -m app.services.rag.ingest
"""

import asyncio
import logging
import re
from pathlib import Path

from langchain_community.document_loaders import Docx2txtLoader, PyMuPDFLoader
from langchain_text_splitters import RecursiveCharacterTextSplitter

from app.core.config import get_settings
from app.services.rag.embeddings import embed_documents
from app.services.rag.models import ChunkMetadata, SyllabusChunk
from app.services.rag.retriever import add_chunks, reset_collection

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500
CHUNK_OVERLAP = 100
EMBED_BATCH_SIZE = 100


# ── Metadata Extraction ──────────────────────────────────────────────────────

MODULE_PATTERN = re.compile(r"module[\s_-]*(\d+)", re.IGNORECASE)


def extract_metadata_from_path(file_path: str) -> dict:
    """
    Extract course and module metadata from the file's directory and name.

    For example:
        syllabus_docs/CST201/CST201_Module_3_Graph_Algorithms.pdf
        → course_id="CST201", module_number=3, topic="Graph Algorithms"
    """
    p = Path(file_path)
    course_id = p.parent.name
    filename = p.stem

    module_match = MODULE_PATTERN.search(filename)
    module_number = int(module_match.group(1)) if module_match else None

    # Topic is whatever remains once the course code and module token are removed
    topic = MODULE_PATTERN.sub(" ", filename)
    topic = re.sub(re.escape(course_id), " ", topic, flags=re.IGNORECASE)
    topic = " ".join(re.split(r"[\s_-]+", topic)).strip()

    return {
        "course_id": course_id,
        "module_number": module_number,
        "topic": topic or None,
        "source": course_id,
        "source_file": p.name,
    }


# ── Document Loading ─────────────────────────────────────────────────────────

def load_documents(docs_dir: str) -> list:
    """
    Walk the syllabus_docs directory and load all PDF/DOCX files.

    Each loader returns a list of Document objects with .page_content (text)
    and .metadata (source path, page number, etc).
    """
    documents = []
    docs_path = Path(docs_dir)

    if not docs_path.exists():
        logger.warning("[Ingest] Directory not found: %s", docs_dir)
        return documents

    for file_path in sorted(docs_path.rglob("*")):
        if file_path.suffix.lower() == ".docx":
            loader = Docx2txtLoader(str(file_path))
        elif file_path.suffix.lower() == ".pdf":
            loader = PyMuPDFLoader(str(file_path))
        else:
            continue

        try:
            docs = loader.load()
        except Exception as e:
            logger.error("[Ingest] Failed to load %s: %s", file_path.name, e)
            continue

        file_meta = extract_metadata_from_path(str(file_path))
        for doc in docs:
            doc.metadata.update(file_meta)
        documents.extend(docs)
        logger.info("[Ingest] Loaded %s (%d page(s))", file_path.name, len(docs))

    return documents


# ── Chunking ─────────────────────────────────────────────────────────────────

def split_documents(documents: list) -> list[SyllabusChunk]:
    """
    Split documents into ~500-char chunks and convert them to SyllabusChunks.

    Smaller chunks produce embeddings focused on one concept, which makes
    matching a specific exam question much more accurate than whole pages.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=CHUNK_SIZE,
        chunk_overlap=CHUNK_OVERLAP,
        separators=["\n\n", "\n", ". ", " ", ""],
        length_function=len,
    )

    chunks = []
    for i, doc in enumerate(splitter.split_documents(documents)):
        content = doc.page_content.strip()
        if not content:
            continue
        meta = doc.metadata
        chunks.append(
            SyllabusChunk(
                id=f"{meta['course_id']}-{i:06d}",
                course_id=meta["course_id"],
                content=content,
                metadata=ChunkMetadata(
                    module_number=meta.get("module_number"),
                    topic=meta.get("topic"),
                    source=meta.get("source"),
                ),
            )
        )
    return chunks


# ── Embedding & Storage ──────────────────────────────────────────────────────

async def store_chunks(chunks: list[SyllabusChunk]) -> int:
    """
    Embed chunks in batches and write them to a fresh collection.

    Everything is embedded before the old collection is dropped, so a
    failed embedding call leaves the previous index intact.
    """
    vectors: list[list[float]] = []
    for start in range(0, len(chunks), EMBED_BATCH_SIZE):
        batch = chunks[start:start + EMBED_BATCH_SIZE]
        vectors.extend(await embed_documents([c.content for c in batch]))
        logger.info("[Ingest] Embedded %d/%d chunks", len(vectors), len(chunks))

    # Chroma writes are blocking
    await asyncio.to_thread(reset_collection)
    stored = 0
    for start in range(0, len(chunks), EMBED_BATCH_SIZE):
        stored += await asyncio.to_thread(
            add_chunks,
            chunks[start:start + EMBED_BATCH_SIZE],
            vectors[start:start + EMBED_BATCH_SIZE],
        )
    return stored


# ── Main ─────────────────────────────────────────────────────────────────────

async def run_ingestion(docs_dir: str | None = None) -> int:
    """Run the full ingestion pipeline. Returns the number of chunks stored."""
    settings = get_settings()
    docs_dir = docs_dir or settings.syllabus_docs_dir

    logger.info("[Ingest] Loading syllabus documents from %s", docs_dir)
    documents = await asyncio.to_thread(load_documents, docs_dir)
    if not documents:
        logger.warning("[Ingest] No documents found, keeping the existing index")
        return 0

    chunks = split_documents(documents)
    courses = sorted(set(c.course_id for c in chunks))
    logger.info(
        "[Ingest] %d pages -> %d chunks (courses: %s)",
        len(documents), len(chunks), ", ".join(courses),
    )

    count = await store_chunks(chunks)
    logger.info("[Ingest] Ingestion complete! %d chunks stored.", count)
    return count


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level)
    asyncio.run(run_ingestion())
