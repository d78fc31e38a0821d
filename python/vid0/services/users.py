"""User profile service.

Covers the current-user profile, lazy sync after sign-in, guest identities
and favorite models.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from vid0.db.models import User
from vid0.errors import ApiErrorCode, NotFoundError
from vid0.logging import get_logger
from vid0.schemas.user import FavoriteModelsOut, GuestUserOut, UserOut

logger = get_logger(__name__)


def user_to_out(user: User) -> UserOut:
    return UserOut.model_validate(user)


def get_user_or_404(db: Session, user_id: UUID) -> User:
    """Load a user row or raise E_USER_NOT_FOUND."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def get_current_user(db: Session, viewer_id: UUID) -> UserOut:
    return user_to_out(get_user_or_404(db, viewer_id))


def sync_user(
    db: Session,
    viewer_id: UUID,
    email: str | None = None,
    display_name: str | None = None,
    profile_image: str | None = None,
    system_prompt: str | None = None,
) -> UserOut:
    """Update profile fields that were supplied; leave the others untouched.

    Covers the case where the identity provider webhook was missed and the
    row only holds what bootstrap could read from the token.
    """
    user = get_user_or_404(db, viewer_id)
    updates: dict[str, Any] = {
        "email": email,
        "display_name": display_name,
        "profile_image": profile_image,
        "system_prompt": system_prompt,
    }
    for field, value in updates.items():
        if value is not None:
            setattr(user, field, value)
    user.last_active_at = datetime.now(UTC)
    db.flush()
    db.commit()

    logger.info("user_synced", fields=sorted(k for k, v in updates.items() if v is not None))
    return user_to_out(user)


def update_last_active(db: Session, viewer_id: UUID) -> None:
    user = get_user_or_404(db, viewer_id)
    user.last_active_at = datetime.now(UTC)
    db.commit()


def get_favorite_models(db: Session, viewer_id: UUID) -> FavoriteModelsOut:
    user = get_user_or_404(db, viewer_id)
    return FavoriteModelsOut(favorite_models=list(user.favorite_models or []))


def update_favorite_models(
    db: Session, viewer_id: UUID, favorite_models: list[str]
) -> FavoriteModelsOut:
    """Replace the user's favorite model list."""
    user = get_user_or_404(db, viewer_id)
    user.favorite_models = list(favorite_models)
    db.flush()
    db.commit()

    logger.info("favorite_models_updated", count=len(favorite_models))
    return FavoriteModelsOut(favorite_models=list(user.favorite_models))


def create_guest(guest_id: str) -> GuestUserOut:
    """Describe a guest identity for a client-generated id.

    Nothing is stored: guests are tracked by their anonymous id in
    ``anonymous_usage`` and never share the ``users.subject`` namespace with
    signed-in accounts.
    """
    logger.info("guest_identity_issued")
    return GuestUserOut(id=guest_id, anonymous=True, message_count=0, daily_message_count=0)
