from app.models.chat import Chat, ChatMessage
from app.models.conversation_record import ConversationRecord, ConversationTurn

__all__ = [
    "Chat",
    "ChatMessage",
    "ConversationRecord",
    "ConversationTurn",
]
