"""
RAG (Retrieval-Augmented Generation) Pipeline

Grounds answers to syllabus questions in course content by:
1. Ingesting syllabus documents into a ChromaDB vector store
2. Retrieving the chunks most similar to a student's question
3. Assembling them with recent conversation turns into one prompt
4. Generating an answer that cites the chunks it was given
"""

from app.services.rag.context import build_messages, to_sources
from app.services.rag.generate import synthesize
from app.services.rag.retriever import search, search_syllabus

__all__ = [
    "build_messages",
    "to_sources",
    "synthesize",
    "search",
    "search_syllabus",
]
