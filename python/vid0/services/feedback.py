"""User feedback submissions."""

from uuid import UUID

from sqlalchemy.orm import Session

from vid0.db.models import Feedback
from vid0.errors import InvalidRequestError
from vid0.logging import get_logger
from vid0.schemas.user import FeedbackOut

logger = get_logger(__name__)

MAX_FEEDBACK_LENGTH = 5000


def submit_feedback(db: Session, viewer_id: UUID, message: str | None) -> FeedbackOut:
    """Store a feedback message.

    Raises:
        InvalidRequestError: If the message is empty or too long.
    """
    text = (message or "").strip()
    if not text:
        raise InvalidRequestError(message="Feedback message is required")
    if len(text) > MAX_FEEDBACK_LENGTH:
        raise InvalidRequestError(
            message=f"Feedback message must be at most {MAX_FEEDBACK_LENGTH} characters"
        )

    entry = Feedback(user_id=viewer_id, message=text)
    db.add(entry)
    db.flush()
    db.commit()

    logger.info("feedback_submitted", message_chars=len(text))
    return FeedbackOut.model_validate(entry)
