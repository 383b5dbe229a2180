from datetime import datetime
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.routers.auth import CurrentUser
from app.services import conversations
from app.services.chat_pipeline import answer_question
from app.services.rag.models import MessageSource
from app.services.rate_limit import chat_rate_limit, enforce_rate_limit

router = APIRouter()


# Schemas
class ChatRequest(BaseModel):
    message: str
    courseId: str | None = None
    conversationId: str | None = None


class ChatResponse(BaseModel):
    answer: str
    sources: list[MessageSource]
    conversationId: str


class ConversationResponse(BaseModel):
    id: str
    title: str
    course_id: str | None
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    id: str
    role: str
    content: str
    sources: list[MessageSource] | None = None
    created_at: datetime


# Endpoints
@router.post("", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Answer a syllabus question, grounded in retrieved course content."""
    await enforce_rate_limit("chat", str(current_user.id), chat_rate_limit())

    turn = await answer_question(
        db,
        current_user.id,
        data.message,
        course_id=data.courseId,
        conversation_id=data.conversationId,
    )

    return ChatResponse(
        answer=turn.answer,
        sources=turn.sources,
        conversationId=str(turn.conversation_id),
    )


@router.get("/conversations", response_model=list[ConversationResponse])
async def get_conversations(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    limit: int = 20,
):
    """List the current user's conversations, most recent first."""
    items = await conversations.list_conversations(db, current_user.id, min(limit, 100))
    return [
        ConversationResponse(
            id=str(c.id),
            title=c.title,
            course_id=c.course_id,
            created_at=c.created_at,
            updated_at=c.updated_at,
        )
        for c in items
    ]


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_conversation_messages(
    conversation_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
):
    """Get the full message log of one of the user's conversations."""
    conversation = await conversations.get_conversation(db, conversation_id, current_user.id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )

    messages = await conversations.list_messages(db, conversation.id)
    return [
        MessageResponse(
            id=str(m.id),
            role=m.role.value,
            content=m.content,
            sources=m.sources,
            created_at=m.created_at,
        )
        for m in messages
    ]
