"""Direct-chat documents: users/{uid}/chats/{chat_id} with nested messages."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
)

from app.db import Base


class Chat(Base):
    __tablename__ = "chats"

    user_id = Column(String(255), primary_key=True)
    chat_id = Column(String(255), primary_key=True, default="default")
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ChatMessage(Base):
    """One message document under a chat. Insert only."""

    __tablename__ = "chat_messages"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id", "chat_id"],
            ["chats.user_id", "chats.chat_id"],
            ondelete="CASCADE",
        ),
        Index("ix_chat_messages_chat_seq", "user_id", "chat_id", "seq"),
    )

    seq = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    chat_id = Column(String(255), nullable=False)
    at = Column(DateTime(timezone=True), nullable=False)
    role = Column(String(16), nullable=False)  # 'user' | 'model' | 'system'
    content = Column(Text, nullable=False, default="")
