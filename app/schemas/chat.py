"""Direct-chat request/response bodies."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CHAT_ID = "default"


class ChatMessageIn(BaseModel):
    """Caller-supplied message. Unknown roles are kept; they collapse to user later."""

    role: str = "user"
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> str:
        return "" if value is None else str(value)


class ChatRequest(BaseModel):
    uid: str = Field(min_length=1)
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    messages: list[ChatMessageIn]

    model_config = {"populate_by_name": True}

    @field_validator("uid", mode="before")
    @classmethod
    def _coerce_uid(cls, value: Any) -> Any:
        # Numeric ids are accepted when non-zero; other types fail validation.
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
            return str(value)
        return value

    @property
    def resolved_chat_id(self) -> str:
        return self.chat_id or DEFAULT_CHAT_ID


class ChatReply(BaseModel):
    reply: str
