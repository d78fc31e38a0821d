"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from vid0.services.bootstrap import ensure_user
from vid0.services.chats import get_owned_chat, get_visible_chat_or_404
from vid0.services.projects import get_project

__all__ = [
    "ensure_user",
    "get_owned_chat",
    "get_visible_chat_or_404",
    "get_project",
]
