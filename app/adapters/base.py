"""
Platform adapter interface.

Adapters encapsulate provider-specific logic (handshake, signatures, payload
shape, send API) and expose the normalized message format to the relay.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from app.schemas.conversa import OutboundMessage, OutboundSendResult, ParsedWebhook


class BasePlatformAdapter(ABC):
    """Contract for platform adapters. New platforms implement this interface."""

    @abstractmethod
    def parse_webhook(self, raw_payload: Any) -> ParsedWebhook:
        """Parse a raw webhook payload. Never raises; returns NoActionableEvent instead."""
        ...

    @abstractmethod
    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send normalized outbound message via platform API. Raise DeliveryError on failure."""
        ...
