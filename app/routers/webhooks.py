"""
Webhook routes for the WhatsApp Cloud API.

GET answers the subscription handshake; POST receives notifications.
Authenticated POSTs are always acknowledged with 200 so the provider never
retries an event we could not process.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from app.commands.webhooks.whatsapp_command import WhatsAppWebhookCommand
from app.routers.utils.dependencies import get_whatsapp_webhook_command

router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.get("", response_class=PlainTextResponse)
def verify_whatsapp_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    command: WhatsAppWebhookCommand = Depends(get_whatsapp_webhook_command),
) -> str:
    """Echo hub.challenge when hub.mode is subscribe and the token matches; else 403."""
    return command.verify(hub_mode, hub_verify_token, hub_challenge)


@router.post("")
async def whatsapp_webhook(
    request: Request,
    command: WhatsAppWebhookCommand = Depends(get_whatsapp_webhook_command),
) -> dict[str, str]:
    """
    Receive WhatsApp notifications. Validate X-Hub-Signature-256 when
    configured (401 on mismatch), then process and return 200.
    """
    raw_body = await request.body()
    headers = dict(request.headers) if request.headers else {}
    return await command.execute(headers, raw_body)
