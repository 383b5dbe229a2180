"""
Chat Pipeline

Runs one student question through retrieval-augmented generation:

1. Validate the message (before any external call)
2. Resolve the conversation (create, or load with an ownership check)
3. Save the user turn and load the recent history
4. Retrieve syllabus chunks for the question
5. Assemble the prompt and synthesize an answer
6. Save the assistant turn, bump the conversation, commit

Retrieval and synthesis failures degrade (no context / apology answer).
Only StoreError aborts the turn; nothing is committed before step 6.
Rate limiting happens in the router, before this runs.
"""

import logging
import re
import uuid

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import NotFound, ValidationError
from app.models.message import MessageRole
from app.services import conversations
from app.services.rag.context import build_messages
from app.services.rag.generate import synthesize
from app.services.rag.models import MessageSource
from app.services.rag.retriever import search_syllabus

logger = logging.getLogger(__name__)

COURSE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ChatTurn(BaseModel):
    answer: str
    sources: list[MessageSource]
    conversation_id: uuid.UUID
    grounded: bool
    degraded: bool = False


def validate_message(message: str | None, max_length: int) -> str:
    """Return the trimmed message or raise ValidationError."""
    if message is None or not isinstance(message, str):
        raise ValidationError("Message is required")
    if len(message) > max_length:
        raise ValidationError(f"Message too long. Maximum {max_length} characters allowed.")
    trimmed = message.strip()
    if not trimmed:
        raise ValidationError("Message cannot be empty")
    return trimmed


def validate_course_id(course_id: str | None) -> str | None:
    if course_id is None or course_id == "":
        return None
    if not COURSE_ID_PATTERN.match(course_id):
        raise ValidationError("Invalid course id")
    return course_id


def parse_conversation_id(conversation_id: str | uuid.UUID | None) -> uuid.UUID | None:
    if conversation_id is None or conversation_id == "":
        return None
    if isinstance(conversation_id, uuid.UUID):
        return conversation_id
    try:
        return uuid.UUID(conversation_id)
    except ValueError:
        # Same answer as a conversation that exists but is not ours
        raise NotFound("Conversation not found") from None


async def answer_question(
    db: AsyncSession,
    user_id: uuid.UUID,
    message: str,
    course_id: str | None = None,
    conversation_id: str | uuid.UUID | None = None,
) -> ChatTurn:
    """
    Answer a student's question and record the turn.

    Raises:
        ValidationError: empty/too long message or malformed course id
        NotFound: conversation_id missing or owned by another user
        StoreError: the turn could not be persisted
    """
    settings = get_settings()

    question = validate_message(message, settings.max_message_length)
    course_id = validate_course_id(course_id)
    conv_id = parse_conversation_id(conversation_id)

    if conv_id is not None:
        conversation = await conversations.get_conversation(db, conv_id, user_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        # Follow-up questions stay scoped to the conversation's course
        course_id = course_id or conversation.course_id
    else:
        conversation = await conversations.create_conversation(
            db, user_id, conversations.derive_title(question), course_id
        )

    user_message = await conversations.append_message(
        db, conversation.id, MessageRole.USER, question
    )

    recent = await conversations.recent_messages(
        db, conversation.id, settings.history_fetch_limit
    )
    history = [
        {"role": m.role.value, "content": m.content}
        for m in reversed(recent)
        if m.id != user_message.id
    ]

    retrieval = await search_syllabus(question, course_id)
    results = retrieval.value

    prompt = build_messages(
        question, results, history, max_turns=settings.history_replay_limit
    )
    synthesis = await synthesize(prompt, results)
    answer = synthesis.value

    await conversations.append_message(
        db, conversation.id, MessageRole.ASSISTANT, answer.answer, answer.sources
    )
    await conversations.touch_conversation(db, conversation.id)
    await conversations.commit(db)

    turn = ChatTurn(
        answer=answer.answer,
        sources=answer.sources,
        conversation_id=conversation.id,
        grounded=bool(results) and not synthesis.degraded,
        degraded=retrieval.degraded or synthesis.degraded,
    )

    log = logger.warning if turn.degraded else logger.info
    log(
        "[Chat] conversation=%s chunks=%d grounded=%s degraded=%s "
        "(retrieval=%s, synthesis=%s)",
        conversation.id, len(results), turn.grounded, turn.degraded,
        retrieval.degraded, synthesis.degraded,
    )
    return turn
