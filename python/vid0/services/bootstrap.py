"""User bootstrap service.

Provides race-safe creation of the local User row on first authenticated
request. Identity comes from the Clerk subject; profile fields found in the
token claims are copied on creation only.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vid0.db.models import User

logger = logging.getLogger(__name__)


def ensure_user(db: Session, subject: str, claims: dict[str, Any] | None = None) -> UUID:
    """Return the id of the User for ``subject``, creating it if needed.

    Race-safe and idempotent: a concurrent insert of the same subject loses
    on the unique constraint and the winner's row is returned.

    Args:
        db: Database session.
        subject: The identity subject (JWT ``sub`` claim).
        claims: Verified token claims, used to seed profile fields.

    Returns:
        The local user id.
    """
    user_id = db.scalar(select(User.id).where(User.subject == subject))
    if user_id is not None:
        return user_id

    claims = claims or {}
    user = User(
        subject=subject,
        email=claims.get("email"),
        display_name=claims.get("name"),
        profile_image=claims.get("picture") or claims.get("image_url"),
        anonymous=False,
    )
    db.add(user)
    try:
        db.commit()
        logger.info("Created user %s for subject", user.id)
        return user.id
    except IntegrityError:
        # Lost race: another request created it
        db.rollback()
        user_id = db.scalar(select(User.id).where(User.subject == subject))
        if user_id is None:
            logger.error("Failed to find user after race recovery")
            raise RuntimeError("Failed to bootstrap user") from None
        logger.info("Found existing user %s after race", user_id)
        return user_id
