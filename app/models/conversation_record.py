"""
Per-user conversation record and its append-only turn history.

One ConversationRecord row per end-user id (phone number). Turns are only
ever inserted; order is the insertion sequence.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.mixins import TimestampMixin


class ConversationRecord(Base, TimestampMixin):
    """Last-write-wins summary fields for one user."""

    __tablename__ = "conversation_records"

    user_id = Column(String(255), primary_key=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_text = Column(Text, nullable=True)

    turns = relationship(
        "ConversationTurn",
        order_by="ConversationTurn.seq",
        lazy="selectin",
    )


class ConversationTurn(Base):
    """One role-tagged turn. Immutable once written."""

    __tablename__ = "conversation_turns"

    __table_args__ = (
        Index("ix_conversation_turns_user_seq", "user_id", "seq"),
    )

    seq = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("conversation_records.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    at = Column(DateTime(timezone=True), nullable=False)
    role = Column(String(16), nullable=False)  # 'user' | 'model'
    content = Column(Text, nullable=False, default="")
