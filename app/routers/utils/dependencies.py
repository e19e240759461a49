from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.commands.chat.direct_chat_command import DirectChatCommand
from app.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand
from app.config import get_settings
from app.core.runtime import Runtime
from app.db import get_db
from app.services.history_store import ConversationHistoryService, HistoryStore


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency returning the collaborators built at startup."""
    return request.app.state.runtime


def get_history_store(db: Session = Depends(get_db)) -> HistoryStore:
    """FastAPI dependency returning a request-scoped history store."""
    return ConversationHistoryService(db, turn_max_chars=get_settings().turn_max_chars)


def get_whatsapp_webhook_command(
    store: HistoryStore = Depends(get_history_store),
    runtime: Runtime = Depends(get_runtime),
) -> WhatsAppWebhookCommand:
    return WhatsAppWebhookCommand(store, runtime.generator, runtime.whatsapp)


def get_direct_chat_command(
    store: HistoryStore = Depends(get_history_store),
    runtime: Runtime = Depends(get_runtime),
) -> DirectChatCommand:
    return DirectChatCommand(store, runtime.generator)
