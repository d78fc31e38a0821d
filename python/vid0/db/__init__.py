"""Database module for vid0.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from vid0.db.engine import create_db_engine, get_engine
from vid0.db.models import (
    AnonymousUsage,
    Base,
    Chat,
    ChatAttachment,
    Feedback,
    Message,
    MessageRole,
    Project,
    User,
    UserApiKey,
    UserPreferences,
)
from vid0.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "MessageRole",
    # Models
    "User",
    "AnonymousUsage",
    "Project",
    "Chat",
    "Message",
    "ChatAttachment",
    "UserApiKey",
    "UserPreferences",
    "Feedback",
]
