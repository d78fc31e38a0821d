"""Feedback route."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vid0.api.deps import get_db
from vid0.auth.middleware import Viewer, get_viewer
from vid0.responses import success_response
from vid0.schemas.user import FeedbackRequest
from vid0.services.feedback import submit_feedback

router = APIRouter(tags=["feedback"])


@router.post("/api/feedback", status_code=201)
def post_feedback(
    body: FeedbackRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    feedback = submit_feedback(db, viewer.user_id, body.message)
    return success_response(feedback.model_dump(mode="json"))
