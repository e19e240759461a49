"""Startup-built collaborators shared by all requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.adapters.whatsapp import WhatsAppAdapter
from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.config import Settings, get_settings
from app.infra.logging_config import get_logger
from app.workers.llm import GenerationClient, build_llm_runner_from_env

logger = get_logger("runtime")


@dataclass
class Runtime:
    generator: GenerationClient
    whatsapp: WhatsAppAdapter


def build_runtime(settings: Optional[Settings] = None) -> Runtime:
    settings = settings or get_settings()
    if not settings.verify_token:
        logger.warning("VERIFY_TOKEN is not set; webhook verification will always fail")
    if not settings.whatsapp_app_secret:
        if settings.signature_required:
            logger.error(
                "WHATSAPP_SIGNATURE_MODE=required but WHATSAPP_APP_SECRET is not set; "
                "every webhook POST will be rejected"
            )
        else:
            logger.warning(
                "WHATSAPP_APP_SECRET is not set; webhook POSTs are NOT authenticated "
                "(WHATSAPP_SIGNATURE_MODE=optional)"
            )
    return Runtime(
        generator=build_llm_runner_from_env(),
        whatsapp=BaseWhatsAppCommand.get_whatsapp_adapter(settings),
    )
