"""Direct-chat command handlers."""

from app.commands.chat.direct_chat_command import DirectChatCommand, DirectChatError

__all__ = ["DirectChatCommand", "DirectChatError"]
