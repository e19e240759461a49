from app.services.history_store import ConversationHistoryService, HistoryStore

__all__ = [
    "ConversationHistoryService",
    "HistoryStore",
]
