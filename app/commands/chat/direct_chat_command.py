"""
Command for the direct-chat entry point.

An application client posts a structured conversation; the bounded window
is sent to the model, the exchange is stored under users/{uid}/chats/{chat},
and the reply is returned synchronously. Unlike the provider webhook, this
caller is not retrying, so failures surface as errors.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.config import Settings, get_settings
from app.constants.default_system_prompt import DefaultSystemPrompt
from app.core.prompting import build_transcript_turns
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
from app.schemas.chat import ChatReply, ChatRequest
from app.schemas.conversa import Role, Turn
from app.services.history_store import HistoryStore, utcnow
from app.workers.llm import GenerationClient


class DirectChatError(Exception):
    """A step failed and the containment table says to surface it."""

    def __init__(self, result: StepResult) -> None:
        super().__init__(f"{result.step.value} failed: {result.error}")
        self.result = result


def _stored_role(role: str) -> Role:
    try:
        return Role(role)
    except ValueError:
        return Role.USER


class DirectChatCommand:
    def __init__(
        self,
        store: HistoryStore,
        generator: GenerationClient,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

    async def execute(self, body: ChatRequest) -> ChatReply:
        """
        Generate and persist a reply for a validated chat request.

        Raises:
            DirectChatError: generation or persistence failed.
        """
        chat_id = body.resolved_chat_id
        turns = build_transcript_turns(
            body.messages,
            window_size=self.settings.history_window,
            max_chars=self.settings.turn_max_chars,
        )
        if not turns:
            # Nothing to send; answer with the fallback rather than call the model.
            reply = DefaultSystemPrompt.CHAT_FALLBACK
        else:
            generated = await run_async_step(
                Step.GENERATION,
                lambda: self.generator.generate(turns),
                timeout=self.settings.generation_timeout_seconds,
            )
            self._check(generated, body.uid)
            reply = generated.value or DefaultSystemPrompt.CHAT_FALLBACK

        now = utcnow()
        to_store: list[Turn] = []
        if body.messages:
            last = body.messages[-1]
            to_store.append(
                Turn(role=_stored_role(last.role), content=last.content, at=now)
            )
        to_store.append(Turn(role=Role.MODEL, content=reply, at=now))
        persisted = await run_blocking_step(
            Step.CHAT_PERSIST,
            lambda: self.store.append_chat_messages(body.uid, chat_id, to_store),
            timeout=self.settings.store_timeout_seconds,
        )
        self._check(persisted, body.uid)
        return ChatReply(reply=reply)

    def _check(self, result: StepResult, user_id: str) -> None:
        if result.ok:
            return
        policy = containment_for(EntryPoint.DIRECT_CHAT, result.step)
        log_step_failure(self.logger, result, user_id, policy)
        if policy == Containment.SURFACE:
            raise DirectChatError(result)
