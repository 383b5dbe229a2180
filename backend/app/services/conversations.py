"""
Conversation Store

Persistence for chat conversations and their append-only message log.

Every write stays inside the caller's session and is only flushed here;
the chat pipeline commits once the whole turn (user message, assistant
message, timestamp bump) has been written. Database failures surface as
StoreError after rolling the session back.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import utcnow
from app.core.exceptions import StoreError
from app.models.conversation import Conversation
from app.models.message import Message, MessageRole
from app.services.rag.models import MessageSource

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50


def derive_title(message: str) -> str:
    """Conversation title from its first message."""
    message = message.strip()
    if len(message) > TITLE_MAX_LENGTH:
        return message[:TITLE_MAX_LENGTH] + "..."
    return message


async def _fail(db: AsyncSession, action: str, error: SQLAlchemyError) -> StoreError:
    logger.error("[Chat] Failed to %s: %s", action, error)
    await db.rollback()
    return StoreError(f"Failed to {action}")


async def create_conversation(
    db: AsyncSession,
    user_id: uuid.UUID,
    title: str,
    course_id: str | None = None,
) -> Conversation:
    conversation = Conversation(user_id=user_id, title=title, course_id=course_id)
    try:
        db.add(conversation)
        await db.flush()
    except SQLAlchemyError as e:
        raise await _fail(db, "create conversation", e) from e
    return conversation


async def get_conversation(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Conversation | None:
    """
    Fetch a conversation owned by user_id.

    Returns None both when the conversation does not exist and when it
    belongs to someone else.
    """
    try:
        result = await db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.user_id == user_id,
            )
        )
    except SQLAlchemyError as e:
        raise await _fail(db, "load conversation", e) from e
    return result.scalar_one_or_none()


async def append_message(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    role: MessageRole,
    content: str,
    sources: list[MessageSource] | None = None,
) -> Message:
    message = Message(
        conversation_id=conversation_id,
        role=role,
        content=content,
        sources=[s.model_dump() for s in sources] if sources is not None else None,
    )
    try:
        db.add(message)
        await db.flush()
    except SQLAlchemyError as e:
        raise await _fail(db, "save message", e) from e
    return message


async def recent_messages(
    db: AsyncSession,
    conversation_id: uuid.UUID,
    limit: int,
) -> list[Message]:
    """Latest `limit` messages, newest first. Callers reverse for replay."""
    try:
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
        )
    except SQLAlchemyError as e:
        raise await _fail(db, "load messages", e) from e
    return list(result.scalars().all())


async def touch_conversation(db: AsyncSession, conversation_id: uuid.UUID) -> None:
    try:
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=utcnow())
        )
    except SQLAlchemyError as e:
        raise await _fail(db, "update conversation", e) from e


async def commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        raise await _fail(db, "commit conversation turn", e) from e


async def list_conversations(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 20,
) -> list[Conversation]:
    """A user's conversations, most recently active first."""
    try:
        result = await db.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.updated_at.desc())
            .limit(limit)
        )
    except SQLAlchemyError as e:
        raise await _fail(db, "list conversations", e) from e
    return list(result.scalars().all())


async def list_messages(db: AsyncSession, conversation_id: uuid.UUID) -> list[Message]:
    """Full message log of a conversation, oldest first."""
    try:
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
    except SQLAlchemyError as e:
        raise await _fail(db, "load messages", e) from e
    return list(result.scalars().all())
