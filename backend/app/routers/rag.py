"""
RAG Admin Router

Provides endpoints to check RAG status and trigger re-ingestion.
"""

import asyncio

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from app.core.exceptions import AppError
from app.routers.auth import CurrentUser
from app.services.rag.retriever import get_vector_store_status

router = APIRouter()


class RAGStatusResponse(BaseModel):
    available: bool
    chunk_count: int
    courses: list[str] = []
    persist_dir: str
    message: str = ""


@router.get("/status", response_model=RAGStatusResponse)
async def rag_status():
    """Check the status of the syllabus vector store."""
    info = await asyncio.to_thread(get_vector_store_status)
    return RAGStatusResponse(**info)


@router.post("/ingest")
async def trigger_ingestion(current_user: CurrentUser):
    """
    Trigger syllabus document re-ingestion.

    This re-processes all documents in syllabus_docs/ and rebuilds
    the ChromaDB collection. Useful after adding new course files.
    """
    from app.services.rag.ingest import run_ingestion

    try:
        count = await run_ingestion()
    except (AppError, OSError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Ingestion failed: {getattr(e, 'detail', None) or str(e)}",
        )

    return {
        "status": "success",
        "message": f"Ingestion complete. {count} chunks stored.",
        "chunk_count": count,
    }
