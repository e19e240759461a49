"""Add conversation history and direct-chat tables

Revision ID: add_conversation_tables
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "add_conversation_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "conversation_records",
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_text", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_table(
        "conversation_turns",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"], ["conversation_records.user_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("seq"),
    )
    op.create_index(
        "ix_conversation_turns_user_seq",
        "conversation_turns",
        ["user_id", "seq"],
        unique=False,
    )
    op.create_table(
        "chats",
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("chat_id", sa.String(255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "chat_id"),
    )
    op.create_table(
        "chat_messages",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("chat_id", sa.String(255), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id", "chat_id"],
            ["chats.user_id", "chats.chat_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("seq"),
    )
    op.create_index(
        "ix_chat_messages_chat_seq",
        "chat_messages",
        ["user_id", "chat_id", "seq"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_chat_messages_chat_seq", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("chats")
    op.drop_index("ix_conversation_turns_user_seq", table_name="conversation_turns")
    op.drop_table("conversation_turns")
    op.drop_table("conversation_records")
