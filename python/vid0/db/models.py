"""SQLAlchemy ORM models for vid0.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are portable so the same metadata runs on PostgreSQL in
deployments and SQLite in tests; ids and timestamps get Python-side defaults.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC.

    SQLite has no timezone support, so values are stored as naive UTC there
    and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class MessageRole(str, PyEnum):
    """Roles a chat message can have."""

    user = "user"
    assistant = "assistant"
    system = "system"
    data = "data"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    ``subject`` is the Clerk identity subject (JWT ``sub`` claim).
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    subject: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Usage counters
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_reset: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    daily_pro_message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_pro_reset: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_active_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    favorite_models: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("daily_message_count >= 0", name="ck_users_daily_count"),
        CheckConstraint("daily_pro_message_count >= 0", name="ck_users_daily_pro_count"),
    )


class AnonymousUsage(Base):
    """Daily counter for callers without an account, keyed by a client id."""

    __tablename__ = "anonymous_usage"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    anonymous_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    daily_message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_reset: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class Project(Base):
    """Project model - a named folder of chats owned by one user."""

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("length(name) BETWEEN 1 AND 200", name="ck_projects_name_length"),
        Index("ix_projects_user_id", "user_id"),
    )


class Chat(Base):
    """Chat model - a thread of messages owned by one user."""

    __tablename__ = "chats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pinned_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("next_seq >= 1", name="ck_chats_next_seq_positive"),
        Index("ix_chats_user_id", "user_id"),
        Index("ix_chats_user_project", "user_id", "project_id"),
    )


class Message(Base):
    """Message model - one entry in a chat, ordered by ``seq``."""

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    chat_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    # Only set for role=user
    user_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    parts: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    attachments: Mapped[list[dict] | None] = mapped_column(JSON, nullable=True)
    message_group_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "role IN ('user', 'assistant', 'system', 'data')",
            name="ck_messages_role",
        ),
        CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        UniqueConstraint("chat_id", "seq", name="uix_messages_chat_seq"),
    )


class ChatAttachment(Base):
    """Uploaded file attached to a chat."""

    __tablename__ = "chat_attachments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    chat_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("file_size >= 0", name="ck_chat_attachments_size"),
        Index("ix_chat_attachments_chat_id", "chat_id"),
        Index("ix_chat_attachments_user_created", "user_id", "created_at"),
    )


class UserApiKey(Base):
    """UserApiKey model - encrypted BYOK API keys per provider."""

    __tablename__ = "user_api_keys"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_key: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    key_nonce: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    master_key_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    key_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "provider IN ('openai', 'mistral', 'perplexity', 'google', "
            "'anthropic', 'xai', 'openrouter')",
            name="ck_user_api_keys_provider",
        ),
        CheckConstraint("master_key_version > 0", name="ck_user_api_keys_master_key_version"),
        UniqueConstraint("user_id", "provider", name="uix_user_api_keys_user_provider"),
    )


class UserPreferences(Base):
    """Display preferences, one row per user."""

    __tablename__ = "user_preferences"

    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    layout: Mapped[str] = mapped_column(Text, nullable=False, default="fullscreen")
    prompt_suggestions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_tool_invocations: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_conversation_previews: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    multi_model_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hidden_models: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class Feedback(Base):
    """Free-text product feedback."""

    __tablename__ = "feedback"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
