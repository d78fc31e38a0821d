"""Chat attachment routes.

The browser uploads straight to storage with a signed token; these routes
sign, record and delete.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from vid0.api.deps import get_app_settings, get_db, get_storage
from vid0.auth.middleware import Viewer, get_viewer
from vid0.config import Settings
from vid0.responses import success_response
from vid0.schemas.attachment import SaveAttachmentRequest, UploadUrlRequest
from vid0.services import attachments as attachments_service
from vid0.storage import StorageClientBase

router = APIRouter(tags=["attachments"])


@router.post("/api/attachments/upload-url")
def create_upload_url(
    body: UploadUrlRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Sign a direct upload.

    Errors:
        E_FILE_TOO_LARGE (400), E_INVALID_FILE_TYPE (400)
        E_DAILY_FILE_LIMIT_REACHED (429)
        E_SIGN_UPLOAD_FAILED (500)
    """
    result = attachments_service.generate_upload_url(
        db, viewer.user_id, storage, body, expires_in=settings.signed_url_expiry_s
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/api/attachments", status_code=201)
def save_attachment(
    body: SaveAttachmentRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    attachment = attachments_service.save_attachment(db, viewer.user_id, storage, body)
    return success_response(attachment.model_dump(mode="json"))


@router.get("/api/attachments/limit")
def upload_limit(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    limit = attachments_service.check_upload_limit(db, viewer.user_id)
    return success_response(limit.model_dump(mode="json"))


@router.delete("/api/attachments/{attachment_id}", status_code=204)
def delete_attachment(
    attachment_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> Response:
    attachments_service.delete_attachment(db, viewer.user_id, attachment_id, storage=storage)
    return Response(status_code=204)
