"""Platform adapters for chat integrations."""

from app.adapters.base import BasePlatformAdapter
from app.adapters.whatsapp import SignatureCheck, WhatsAppAdapter

__all__ = ["BasePlatformAdapter", "SignatureCheck", "WhatsAppAdapter"]
