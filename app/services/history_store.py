"""
History store: per-user conversation records and per-chat message documents.

Reads never fail on a missing user; they return empty defaults. Writes are
a merge (upsert of the last-write-wins fields) plus an append of new turns,
committed together. Appends are plain inserts, so concurrent writers for the
same user never lose each other's turns.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.history_window import truncate
from app.core.step_result import StoreError
from app.models.chat import Chat, ChatMessage
from app.models.conversation_record import ConversationRecord, ConversationTurn
from app.schemas.conversa import ConversationSnapshot, Role, Turn

logger = logging.getLogger(__name__)

DEFAULT_TURN_MAX_CHARS = 4000

# Drivers reject some text (lone surrogates, NUL bytes) with plain ValueErrors.
STORE_FAILURES = (SQLAlchemyError, ValueError)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore(ABC):
    """Contract the orchestrators depend on. Implementations raise StoreError."""

    @abstractmethod
    def get_record(self, user_id: str) -> ConversationSnapshot:
        """Full record for ``user_id``; empty defaults when none exists."""
        ...

    @abstractmethod
    def merge_write(
        self,
        user_id: str,
        append: Turn,
        last_message_at: Optional[datetime] = None,
        last_text: Optional[str] = None,
    ) -> None:
        """Upsert the given summary fields and append one turn atomically."""
        ...

    @abstractmethod
    def append_chat_messages(
        self, user_id: str, chat_id: str, turns: Iterable[Turn]
    ) -> None:
        """Touch the chat's updated_at and append message documents to it."""
        ...


class ConversationHistoryService(HistoryStore):
    """SQLAlchemy-backed history store bound to one request-scoped session."""

    def __init__(
        self, db: Session, turn_max_chars: int = DEFAULT_TURN_MAX_CHARS
    ) -> None:
        self.db = db
        self.turn_max_chars = turn_max_chars

    def get_record(self, user_id: str) -> ConversationSnapshot:
        try:
            record = self.db.get(ConversationRecord, user_id)
        except STORE_FAILURES as e:
            self.db.rollback()
            raise StoreError(f"Failed to read record for {user_id}: {e}") from e
        if record is None:
            return ConversationSnapshot(user_id=user_id)
        return ConversationSnapshot(
            user_id=user_id,
            last_message_at=record.last_message_at,
            last_text=record.last_text,
            history=[
                Turn(role=Role(t.role), content=t.content, at=t.at)
                for t in record.turns
            ],
        )

    def merge_write(
        self,
        user_id: str,
        append: Turn,
        last_message_at: Optional[datetime] = None,
        last_text: Optional[str] = None,
    ) -> None:
        fields: dict[str, Any] = {}
        if last_message_at is not None:
            fields["last_message_at"] = last_message_at
        if last_text is not None:
            fields["last_text"] = last_text
        try:
            self._upsert(ConversationRecord.__table__, {"user_id": user_id}, fields)
            self.db.add(
                ConversationTurn(
                    user_id=user_id,
                    at=append.at or utcnow(),
                    role=append.role.value,
                    content=truncate(append.content, self.turn_max_chars),
                )
            )
            self.db.commit()
        except STORE_FAILURES as e:
            self.db.rollback()
            raise StoreError(f"Failed to write record for {user_id}: {e}") from e
        # Drop the identity-map copy so the next read sees the new turns.
        self.db.expire_all()

    def append_chat_messages(
        self, user_id: str, chat_id: str, turns: Iterable[Turn]
    ) -> None:
        now = utcnow()
        try:
            self._upsert(
                Chat.__table__,
                {"user_id": user_id, "chat_id": chat_id},
                {"updated_at": now},
            )
            for turn in turns:
                self.db.add(
                    ChatMessage(
                        user_id=user_id,
                        chat_id=chat_id,
                        at=turn.at or now,
                        role=turn.role.value,
                        content=truncate(turn.content, self.turn_max_chars),
                    )
                )
            self.db.commit()
        except STORE_FAILURES as e:
            self.db.rollback()
            raise StoreError(
                f"Failed to append messages to chat {user_id}/{chat_id}: {e}"
            ) from e

    def get_chat_messages(self, user_id: str, chat_id: str) -> list[Turn]:
        """Messages of one chat, oldest first."""
        try:
            rows = (
                self.db.query(ChatMessage)
                .filter(ChatMessage.user_id == user_id, ChatMessage.chat_id == chat_id)
                .order_by(ChatMessage.seq)
                .all()
            )
        except STORE_FAILURES as e:
            self.db.rollback()
            raise StoreError(f"Failed to read chat {user_id}/{chat_id}: {e}") from e
        return [Turn(role=Role(r.role), content=r.content, at=r.at) for r in rows]

    def _upsert(
        self, table: Table, keys: dict[str, Any], fields: dict[str, Any]
    ) -> None:
        """INSERT ... ON CONFLICT DO UPDATE on the primary key columns."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(table)
        elif dialect == "sqlite":
            stmt = sqlite.insert(table)
        else:
            raise StoreError(f"Unsupported database dialect: {dialect}")
        now = utcnow()
        values = {**keys, **fields}
        if "created_at" in table.c:
            values.setdefault("created_at", now)
            values.setdefault("updated_at", now)
        stmt = stmt.values(**values)
        update = dict(fields)
        if "updated_at" in table.c:
            update.setdefault("updated_at", now)
        if update:
            stmt = stmt.on_conflict_do_update(index_elements=list(keys), set_=update)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(keys))
        self.db.execute(stmt)
