from app.models.user import User
from app.models.conversation import Conversation
from app.models.message import Message, MessageRole

__all__ = [
    "User",
    "Conversation",
    "Message",
    "MessageRole",
]
