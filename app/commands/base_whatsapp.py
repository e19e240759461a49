"""
Base command for WhatsApp-related operations.

Provides a shared way to obtain a configured WhatsAppAdapter for the webhook
command and the application runtime.
"""

from __future__ import annotations

from typing import Optional

from app.adapters.whatsapp import WhatsAppAdapter
from app.config import Settings, get_settings


class BaseWhatsAppCommand:
    """
    Base for WhatsApp-related commands.
    Provides a shared way to obtain a configured WhatsAppAdapter.
    """

    @staticmethod
    def get_whatsapp_adapter(settings: Optional[Settings] = None) -> WhatsAppAdapter:
        """Return a WhatsAppAdapter built from settings."""
        settings = settings or get_settings()
        return WhatsAppAdapter(
            access_token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_id,
            verify_token=settings.verify_token,
            app_secret=settings.whatsapp_app_secret,
            signature_required=settings.signature_required,
            api_base=settings.whatsapp_api_base,
            api_version=settings.whatsapp_api_version,
            timeout=settings.whatsapp_timeout_seconds,
        )
