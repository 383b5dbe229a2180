"""
Pydantic models shared across the RAG pipeline.

SearchResult is produced per query by the retriever and never persisted.
MessageSource is the projection stored on assistant messages for citations.
"""

from pydantic import BaseModel, Field


class ChunkMetadata(BaseModel):
    module_number: int | None = None
    topic: str | None = None
    source: str | None = None


class SyllabusChunk(BaseModel):
    id: str
    course_id: str
    content: str
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class SearchResult(BaseModel):
    id: str
    content: str
    similarity: float = Field(ge=0.0, le=1.0)
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class MessageSource(BaseModel):
    course_code: str
    module: str
    topic: str
    similarity: float


class SynthesizedAnswer(BaseModel):
    answer: str
    sources: list[MessageSource] = []
