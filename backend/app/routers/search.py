"""
Syllabus Search Router

Direct semantic search over syllabus chunks, without answer generation.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.routers.auth import CurrentUser
from app.services.chat_pipeline import validate_course_id
from app.services.rag.models import SearchResult
from app.services.rag.retriever import search_syllabus
from app.services.rate_limit import enforce_rate_limit, search_rate_limit

router = APIRouter()
settings = get_settings()


class SearchRequest(BaseModel):
    query: str
    courseId: str | None = None


class SearchResponse(BaseModel):
    results: list[SearchResult]
    message: str = ""


@router.post("", response_model=SearchResponse)
async def search(data: SearchRequest, current_user: CurrentUser):
    """Return the syllabus chunks most similar to a query."""
    await enforce_rate_limit("search", str(current_user.id), search_rate_limit())

    query = data.query.strip()
    if not query:
        raise ValidationError("Query is required")
    if len(data.query) > settings.max_search_query_length:
        raise ValidationError(
            f"Query too long. Maximum {settings.max_search_query_length} characters."
        )
    course_id = validate_course_id(data.courseId)

    outcome = await search_syllabus(query, course_id)
    if outcome.degraded:
        return SearchResponse(results=[], message="Syllabus search is unavailable right now")

    return SearchResponse(results=outcome.value)
