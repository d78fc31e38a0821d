"""User display preferences.

A user without a row gets the defaults; the first update creates the row.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from vid0.constants import DEFAULT_LAYOUT
from vid0.db.models import UserPreferences
from vid0.logging import get_logger
from vid0.schemas.user import PreferencesOut, UpdatePreferencesRequest

logger = get_logger(__name__)

DEFAULT_PREFERENCES: dict[str, Any] = {
    "layout": DEFAULT_LAYOUT,
    "prompt_suggestions": True,
    "show_tool_invocations": True,
    "show_conversation_previews": True,
    "multi_model_enabled": False,
    "hidden_models": [],
}


def get_preferences(db: Session, viewer_id: UUID) -> PreferencesOut:
    row = db.get(UserPreferences, viewer_id)
    if row is None:
        return PreferencesOut(**DEFAULT_PREFERENCES)
    return PreferencesOut.model_validate(row)


def update_preferences(
    db: Session, viewer_id: UUID, request: UpdatePreferencesRequest
) -> PreferencesOut:
    """Apply a partial update, creating the row on first write."""
    updates = request.updates()

    row = db.get(UserPreferences, viewer_id)
    if row is None:
        row = UserPreferences(user_id=viewer_id, **{**DEFAULT_PREFERENCES, "hidden_models": []})
        db.add(row)
    for field, value in updates.items():
        setattr(row, field, value)
    row.updated_at = datetime.now(UTC)
    db.flush()
    db.commit()

    logger.info("preferences_updated", fields=sorted(updates))
    return PreferencesOut.model_validate(row)
