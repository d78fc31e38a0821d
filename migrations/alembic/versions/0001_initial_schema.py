"""Initial schema - users, usage, projects, chats, messages, attachments, keys, preferences, feedback

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    # Enable pgcrypto extension for gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("anonymous", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("premium", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("message_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("daily_message_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("daily_reset", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("daily_pro_message_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("daily_pro_reset", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_active_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("favorite_models", sa.JSON(), nullable=True),
        sa.Column("system_prompt", sa.Text(), nullable=True),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subject", name="uix_users_subject"),
        sa.CheckConstraint("daily_message_count >= 0", name="ck_users_daily_count"),
        sa.CheckConstraint("daily_pro_message_count >= 0", name="ck_users_daily_pro_count"),
    )

    # ==========================================================================
    # anonymous_usage table
    # ==========================================================================
    op.create_table(
        "anonymous_usage",
        _id_column(),
        sa.Column("anonymous_id", sa.Text(), nullable=False),
        sa.Column("daily_message_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("daily_reset", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("anonymous_id", name="uix_anonymous_usage_anonymous_id"),
    )

    # ==========================================================================
    # projects table
    # ==========================================================================
    op.create_table(
        "projects",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("length(name) BETWEEN 1 AND 200", name="ck_projects_name_length"),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])

    # ==========================================================================
    # chats table
    # ==========================================================================
    op.create_table(
        "chats",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("system_prompt", sa.Text(), nullable=True),
        sa.Column("public", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("pinned", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("pinned_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("next_seq", sa.Integer(), server_default="1", nullable=False),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.CheckConstraint("next_seq >= 1", name="ck_chats_next_seq_positive"),
    )
    op.create_index("ix_chats_user_id", "chats", ["user_id"])
    op.create_index("ix_chats_user_project", "chats", ["user_id", "project_id"])

    # ==========================================================================
    # messages table
    # ==========================================================================
    op.create_table(
        "messages",
        _id_column(),
        sa.Column("chat_id", sa.UUID(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("parts", sa.JSON(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("message_group_id", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "role IN ('user', 'assistant', 'system', 'data')",
            name="ck_messages_role",
        ),
        sa.CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        sa.UniqueConstraint("chat_id", "seq", name="uix_messages_chat_seq"),
    )

    # ==========================================================================
    # chat_attachments table
    # ==========================================================================
    op.create_table(
        "chat_attachments",
        _id_column(),
        sa.Column("chat_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_type", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("file_size >= 0", name="ck_chat_attachments_size"),
    )
    op.create_index("ix_chat_attachments_chat_id", "chat_attachments", ["chat_id"])
    op.create_index(
        "ix_chat_attachments_user_created", "chat_attachments", ["user_id", "created_at"]
    )

    # ==========================================================================
    # user_api_keys table
    # ==========================================================================
    op.create_table(
        "user_api_keys",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("encrypted_key", sa.LargeBinary(), nullable=False),
        sa.Column("key_nonce", sa.LargeBinary(), nullable=False),
        sa.Column("master_key_version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("key_fingerprint", sa.Text(), nullable=False),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "provider IN ('openai', 'mistral', 'perplexity', 'google', "
            "'anthropic', 'xai', 'openrouter')",
            name="ck_user_api_keys_provider",
        ),
        sa.CheckConstraint("master_key_version > 0", name="ck_user_api_keys_master_key_version"),
        sa.UniqueConstraint("user_id", "provider", name="uix_user_api_keys_user_provider"),
    )

    # ==========================================================================
    # user_preferences table
    # ==========================================================================
    op.create_table(
        "user_preferences",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("layout", sa.Text(), server_default="fullscreen", nullable=False),
        sa.Column("prompt_suggestions", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("show_tool_invocations", sa.Boolean(), server_default="true", nullable=False),
        sa.Column(
            "show_conversation_previews", sa.Boolean(), server_default="true", nullable=False
        ),
        sa.Column("multi_model_enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("hidden_models", sa.JSON(), server_default="[]", nullable=False),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    # ==========================================================================
    # feedback table
    # ==========================================================================
    op.create_table(
        "feedback",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("feedback")
    op.drop_table("user_preferences")
    op.drop_table("user_api_keys")
    op.drop_index("ix_chat_attachments_user_created", table_name="chat_attachments")
    op.drop_index("ix_chat_attachments_chat_id", table_name="chat_attachments")
    op.drop_table("chat_attachments")
    op.drop_table("messages")
    op.drop_index("ix_chats_user_project", table_name="chats")
    op.drop_index("ix_chats_user_id", table_name="chats")
    op.drop_table("chats")
    op.drop_index("ix_projects_user_id", table_name="projects")
    op.drop_table("projects")
    op.drop_table("anonymous_usage")
    op.drop_table("users")
