"""
Command to handle WhatsApp webhook calls.

GET: subscription handshake. POST: verify the signature, extract the message,
record the user turn, generate a reply, record the model turn, deliver it.
Once the request is authenticated the provider always receives 200; failing
steps are handled according to the containment table in
app.core.step_result.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import HTTPException

from app.adapters.whatsapp import SignatureCheck, WhatsAppAdapter
from app.config import PROMPT_MODE_TRANSCRIPT, Settings, get_settings
from app.constants.default_system_prompt import DefaultSystemPrompt
from app.core.prompting import build_single_prompt_turns, build_transcript_turns
from app.core.step_result import (
    Containment,
    EntryPoint,
    Step,
    StepResult,
    containment_for,
    log_step_failure,
    run_async_step,
    run_blocking_step,
)
from app.schemas.conversa import (
    Channel,
    ConversationSnapshot,
    InboundMessage,
    NoActionableEvent,
    OutboundMessage,
    ParsedWebhook,
    Role,
    Turn,
)
from app.services.history_store import HistoryStore, utcnow
from app.workers.llm import GenerationClient

ACK = {"status": "ok"}


class WhatsAppWebhookCommand:
    """
    Drive one WhatsApp webhook invocation end-to-end.
    Collaborators (store, generation client, adapter) are injected.
    """

    def __init__(
        self,
        store: HistoryStore,
        generator: GenerationClient,
        adapter: WhatsAppAdapter,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.adapter = adapter
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

    def verify(
        self, mode: Optional[str], token: Optional[str], challenge: Optional[str]
    ) -> str:
        """
        Answer the subscription handshake.

        Returns:
            str: The challenge to echo back.

        Raises:
            HTTPException: 403 when mode or token do not match.
        """
        echoed = self.adapter.verify_subscription(mode, token, challenge)
        if echoed is None:
            self.logger.warning(
                "WhatsApp webhook verification rejected (mode=%s)", mode
            )
            raise HTTPException(status_code=403, detail="Verification failed")
        return echoed

    async def execute(
        self, headers: dict[str, str], raw_body: bytes
    ) -> dict[str, str]:
        """
        Authenticate and process one webhook POST.

        Returns:
            dict: {"status": "ok"} for every authenticated request.

        Raises:
            HTTPException: 401 on signature mismatch, before any side effect.
        """
        check = self.adapter.check_signature(headers, raw_body)
        if check == SignatureCheck.INVALID:
            self.logger.warning("WhatsApp webhook signature mismatch; rejecting")
            raise HTTPException(status_code=401, detail="Invalid signature")
        if check == SignatureCheck.SKIPPED:
            self.logger.warning(
                "WhatsApp webhook accepted without signature verification"
            )

        parsed = self._parse(raw_body)
        if isinstance(parsed, NoActionableEvent):
            self.logger.info("WhatsApp webhook ignored: %s", parsed.reason)
            return ACK

        try:
            await self._handle_message(parsed)
        except Exception:
            # The provider retries anything but a 200.
            self.logger.exception(
                "Unexpected failure handling message from %s", parsed.external_user_id
            )
        return ACK

    def _parse(self, raw_body: bytes) -> ParsedWebhook:
        try:
            payload = json.loads(raw_body or b"null")
        except ValueError:
            return NoActionableEvent(reason="body is not valid JSON")
        return self.adapter.parse_webhook(payload)

    async def _handle_message(self, inbound: InboundMessage) -> None:
        user_id = inbound.external_user_id
        text = inbound.text

        read = await run_blocking_step(
            Step.STORE_READ,
            lambda: self.store.get_record(user_id),
            timeout=self.settings.store_timeout_seconds,
        )
        if not self._proceed(read, user_id):
            return
        snapshot: ConversationSnapshot = read.value

        now = utcnow()
        user_turn = Turn(role=Role.USER, content=text, at=now)
        written = await run_blocking_step(
            Step.STORE_USER_TURN,
            lambda: self.store.merge_write(
                user_id, user_turn, last_message_at=now, last_text=text
            ),
            timeout=self.settings.store_timeout_seconds,
        )
        if not self._proceed(written, user_id):
            return

        turns = self._build_turns(snapshot, user_turn)
        generated = await run_async_step(
            Step.GENERATION,
            lambda: self.generator.generate(turns),
            timeout=self.settings.generation_timeout_seconds,
        )
        if not self._proceed(generated, user_id):
            return
        reply = generated.value or DefaultSystemPrompt.WEBHOOK_FALLBACK

        model_turn = Turn(role=Role.MODEL, content=reply, at=utcnow())
        recorded = await run_blocking_step(
            Step.STORE_MODEL_TURN,
            lambda: self.store.merge_write(user_id, model_turn),
            timeout=self.settings.store_timeout_seconds,
        )
        if not self._proceed(recorded, user_id):
            return

        outbound = OutboundMessage(
            channel=Channel.WHATSAPP, external_user_id=user_id, text=reply
        )
        delivered = await run_async_step(
            Step.DELIVERY,
            lambda: self.adapter.send(outbound),
            timeout=self.settings.whatsapp_timeout_seconds,
        )
        if not self._proceed(delivered, user_id):
            return
        if not delivered.value.success:
            self.logger.error("WhatsApp delivery to %s was not accepted", user_id)
            return
        self.logger.info(
            "Replied to %s (platform_message_id=%s)",
            user_id,
            delivered.value.platform_message_id,
        )

    def _build_turns(
        self, snapshot: ConversationSnapshot, user_turn: Turn
    ) -> list[Turn]:
        if self.settings.prompt_mode == PROMPT_MODE_TRANSCRIPT:
            return build_transcript_turns(
                [*snapshot.history, user_turn],
                window_size=self.settings.history_window,
                max_chars=self.settings.turn_max_chars,
            )
        return build_single_prompt_turns(
            snapshot,
            user_turn.content,
            snapshot_max_chars=self.settings.snapshot_max_chars,
        )

    def _proceed(self, result: StepResult, user_id: str) -> bool:
        """True when the pipeline should go on after ``result``."""
        if result.ok:
            return True
        policy = containment_for(EntryPoint.WEBHOOK, result.step)
        log_step_failure(self.logger, result, user_id, policy)
        return policy == Containment.CONTINUE
