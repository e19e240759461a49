"""
WhatsApp Cloud API adapter.

Handles the subscription handshake, X-Hub-Signature-256 verification,
parsing of webhook notifications and sending text replies through the
Graph API messages endpoint.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
from enum import Enum
from typing import Any, Optional

import requests

from app.adapters.base import BasePlatformAdapter
from app.core.step_result import DeliveryError
from app.schemas.conversa import (
    Channel,
    InboundMessage,
    NoActionableEvent,
    OutboundMessage,
    OutboundSendResult,
    ParsedWebhook,
)

SUBSCRIBE_MODE = "subscribe"
SIGNATURE_PREFIX = "sha256="


class SignatureCheck(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    SKIPPED = "skipped"  # header or secret absent, optional mode


def compute_signature(secret: str, raw_body: bytes) -> str:
    """``sha256=<hex>`` HMAC of the raw request body."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def _first(value: Any) -> Any:
    """First element of a non-empty list, else None."""
    if isinstance(value, list) and value:
        return value[0]
    return None


class WhatsAppAdapter(BasePlatformAdapter):
    """WhatsApp adapter: handshake, signature check, parse notifications, send text."""

    SIGNATURE_HEADER = "X-Hub-Signature-256"

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str],
        verify_token: Optional[str] = None,
        app_secret: Optional[str] = None,
        signature_required: bool = False,
        api_base: str = "https://graph.facebook.com",
        api_version: str = "v21.0",
        timeout: float = 10.0,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._verify_token = verify_token
        self._app_secret = app_secret
        self._signature_required = signature_required
        self._api_base = api_base.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout

    @property
    def messages_url(self) -> str:
        return f"{self._api_base}/{self._api_version}/{self._phone_number_id}/messages"

    def verify_subscription(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> Optional[str]:
        """Return the challenge to echo when the handshake matches, else None."""
        if not self._verify_token:
            return None
        if mode != SUBSCRIBE_MODE or token is None:
            return None
        if not hmac.compare_digest(
            token.encode("utf-8"), self._verify_token.encode("utf-8")
        ):
            return None
        return challenge if challenge is not None else ""

    def check_signature(
        self, request_headers: Optional[dict[str, str]], raw_body: bytes
    ) -> SignatureCheck:
        actual = self._header(request_headers or {}, self.SIGNATURE_HEADER)
        if not actual or not self._app_secret:
            if self._signature_required:
                return SignatureCheck.INVALID
            return SignatureCheck.SKIPPED
        expected = compute_signature(self._app_secret, raw_body)
        if hmac.compare_digest(actual.encode("utf-8"), expected.encode("utf-8")):
            return SignatureCheck.VALID
        return SignatureCheck.INVALID

    def parse_webhook(self, raw_payload: Any) -> ParsedWebhook:
        """Extract entry[0].changes[0].value.messages[0]; anything missing is a no-op."""
        if not isinstance(raw_payload, dict):
            return NoActionableEvent(reason="payload is not an object")
        entry = _first(raw_payload.get("entry"))
        if not isinstance(entry, dict):
            return NoActionableEvent(reason="no entry")
        change = _first(entry.get("changes"))
        if not isinstance(change, dict):
            return NoActionableEvent(reason="no change")
        value = change.get("value")
        if not isinstance(value, dict):
            return NoActionableEvent(reason="no value")
        message = _first(value.get("messages"))
        if not isinstance(message, dict):
            return NoActionableEvent(reason="no message")
        sender = message.get("from")
        if not isinstance(sender, str) or not sender:
            return NoActionableEvent(reason="message has no sender")
        text_obj = message.get("text")
        body = text_obj.get("body") if isinstance(text_obj, dict) else None
        text = body.strip() if isinstance(body, str) else ""
        message_id = message.get("id")
        return InboundMessage(
            channel=Channel.WHATSAPP,
            external_user_id=sender,
            text=text,
            message_id=message_id if isinstance(message_id, str) else None,
        )

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send a text message via the Graph API. Recipient = external_user_id."""
        if outbound.channel != Channel.WHATSAPP:
            return OutboundSendResult(success=False, platform_message_id=None)
        if not self._access_token or not self._phone_number_id:
            raise DeliveryError("WhatsApp token or phone number id is not configured")

        payload = {
            "messaging_product": "whatsapp",
            "to": outbound.external_user_id,
            "type": "text",
            "text": {"body": outbound.text},
        }
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            resp = await asyncio.to_thread(
                requests.post,
                self.messages_url,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"WhatsApp send failed: {e}") from e
        if not resp.ok:
            raise DeliveryError(
                f"WhatsApp send returned {resp.status_code}: {resp.text[:500]}"
            )
        return OutboundSendResult(
            success=True, platform_message_id=self._message_id(resp)
        )

    @staticmethod
    def _message_id(resp: requests.Response) -> Optional[str]:
        try:
            data = resp.json()
        except ValueError:
            return None
        first = _first(data.get("messages")) if isinstance(data, dict) else None
        if isinstance(first, dict) and isinstance(first.get("id"), str):
            return first["id"]
        return None

    @staticmethod
    def _header(request_headers: dict[str, str], name: str) -> Optional[str]:
        target = name.lower()
        for key, value in request_headers.items():
            if key.lower() == target:
                return value
        return None
