"""
Normalized message and history contracts for the relay.

Inbound provider payloads are converted into these shapes; outbound replies
and stored history use them too. Independent of the storage backend.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


class Channel(str, Enum):
    """Supported chat channels."""

    WHATSAPP = "whatsapp"


class Role(str, Enum):
    """Turn author. SYSTEM is only accepted from direct-chat callers."""

    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class Turn(BaseModel):
    """One role-tagged message unit of a conversation."""

    role: Role
    content: str = ""
    at: Optional[datetime] = None  # assigned server-side when stored


class ConversationSnapshot(BaseModel):
    """Full conversation record as read from the store (empty defaults if new)."""

    user_id: str
    last_message_at: Optional[datetime] = None
    last_text: Optional[str] = None
    history: list[Turn] = Field(default_factory=list)


class InboundMessage(BaseModel):
    """Normalized inbound event (adapter → orchestrator)."""

    channel: Channel
    external_user_id: str
    text: str = ""
    message_id: Optional[str] = None


class NoActionableEvent(BaseModel):
    """Payload carried nothing to answer (status callback, malformed body...)."""

    reason: str


ParsedWebhook = Union[InboundMessage, NoActionableEvent]


class OutboundMessage(BaseModel):
    """Normalized outbound reply (orchestrator → adapter)."""

    channel: Channel
    external_user_id: str  # WhatsApp: recipient phone number (== inbound from)
    text: str


class OutboundSendResult(BaseModel):
    """Result of sending an outbound message (success + optional message_id)."""

    success: bool
    platform_message_id: Optional[str] = None
