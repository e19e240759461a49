"""
Prompt assembly for the generation client.

Two strategies:
- transcript: the bounded window of role-tagged turns, contents truncated,
  any role other than model collapsed to user;
- single: one instruction-style user turn embedding a truncated snapshot of
  the stored record plus the current inbound text.
"""

from __future__ import annotations

import json
from typing import Iterable, Protocol

from app.constants.default_system_prompt import DefaultSystemPrompt
from app.core.history_window import DEFAULT_WINDOW_SIZE, truncate, window
from app.schemas.conversa import ConversationSnapshot, Role, Turn

DEFAULT_MAX_CHARS = 4000
DEFAULT_SNAPSHOT_CHARS = 800


class RoleContent(Protocol):
    role: object
    content: str


def _generation_role(role: object) -> Role:
    value = role.value if isinstance(role, Role) else str(role)
    return Role.MODEL if value == Role.MODEL.value else Role.USER


def build_transcript_turns(
    messages: Iterable[RoleContent],
    window_size: int = DEFAULT_WINDOW_SIZE,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> list[Turn]:
    """Window the last ``window_size`` messages and map them to generation turns."""
    bounded = window(list(messages), window_size)
    return [
        Turn(
            role=_generation_role(m.role),
            content=truncate(m.content or "", max_chars),
        )
        for m in bounded
    ]


def serialize_snapshot(snapshot: ConversationSnapshot, max_chars: int) -> str:
    """Compact JSON of the stored record, cut to ``max_chars``."""
    payload = snapshot.model_dump(mode="json", exclude={"user_id"})
    return json.dumps(payload, ensure_ascii=False, default=str)[:max_chars]


def build_single_prompt(
    snapshot: ConversationSnapshot,
    text: str,
    snapshot_max_chars: int = DEFAULT_SNAPSHOT_CHARS,
    persona: str = DefaultSystemPrompt.PERSONA,
    language_directive: str = DefaultSystemPrompt.LANGUAGE_DIRECTIVE,
) -> str:
    history = serialize_snapshot(snapshot, snapshot_max_chars)
    return DefaultSystemPrompt.SINGLE_PROMPT_TEMPLATE.format(
        persona=persona,
        history=history,
        text=text,
        language_directive=language_directive,
    )


def build_single_prompt_turns(
    snapshot: ConversationSnapshot,
    text: str,
    snapshot_max_chars: int = DEFAULT_SNAPSHOT_CHARS,
) -> list[Turn]:
    return [
        Turn(
            role=Role.USER,
            content=build_single_prompt(snapshot, text, snapshot_max_chars),
        )
    ]
