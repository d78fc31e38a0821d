"""Chat attachment service.

Upload flow:
1. ``generate_upload_url`` validates the file and signs a direct upload to
   ``{user_id}/{chat_id}/{uuid}.{ext}``.
2. The browser uploads to storage.
3. ``save_attachment`` records the object against the chat and counts toward
   the daily upload quota.

Only chat owners can attach files or delete attachments.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vid0.constants import ALLOWED_FILE_TYPES, DAILY_FILE_UPLOAD_LIMIT, MAX_FILE_SIZE
from vid0.db.models import ChatAttachment
from vid0.errors import (
    ApiError,
    ApiErrorCode,
    FileUploadLimitError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from vid0.logging import get_logger
from vid0.schemas.attachment import (
    AttachmentOut,
    SaveAttachmentRequest,
    UploadLimitOut,
    UploadUrlOut,
    UploadUrlRequest,
)
from vid0.services.chats import get_owned_chat, purge_blobs
from vid0.services.usage import start_of_utc_day
from vid0.storage import StorageClientBase, StorageError, build_attachment_path, file_extension
from vid0.storage.paths import path_belongs_to

logger = get_logger(__name__)

# Extensions accepted for each allowed content type
EXTENSIONS_BY_TYPE: dict[str, frozenset[str]] = {
    "image/jpeg": frozenset({"jpg", "jpeg"}),
    "image/png": frozenset({"png"}),
    "image/gif": frozenset({"gif"}),
    "application/pdf": frozenset({"pdf"}),
    "text/plain": frozenset({"txt", "text", "log"}),
    "text/markdown": frozenset({"md", "markdown"}),
    "application/json": frozenset({"json"}),
    "text/csv": frozenset({"csv"}),
    "application/vnd.ms-excel": frozenset({"xls"}),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": frozenset({"xlsx"}),
}


def validate_file(file_name: str, file_type: str, file_size: int) -> None:
    """Check size, content type, and that the extension matches the type.

    Raises:
        InvalidRequestError: E_FILE_TOO_LARGE or E_INVALID_FILE_TYPE.
    """
    if file_size > MAX_FILE_SIZE:
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE,
            f"File size exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit",
        )
    if file_type not in ALLOWED_FILE_TYPES or file_extension(file_name) not in EXTENSIONS_BY_TYPE.get(
        file_type, frozenset()
    ):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_FILE_TYPE,
            "File type not supported or doesn't match its extension",
        )


def count_uploads_today(db: Session, viewer_id: UUID, now: datetime | None = None) -> int:
    since = start_of_utc_day(now)
    return db.scalar(
        select(func.count())
        .select_from(ChatAttachment)
        .where(ChatAttachment.user_id == viewer_id, ChatAttachment.created_at >= since)
    ) or 0


def check_upload_limit(db: Session, viewer_id: UUID, now: datetime | None = None) -> UploadLimitOut:
    count = count_uploads_today(db, viewer_id, now)
    return UploadLimitOut(
        count=count,
        limit=DAILY_FILE_UPLOAD_LIMIT,
        can_upload=count < DAILY_FILE_UPLOAD_LIMIT,
    )


def generate_upload_url(
    db: Session,
    viewer_id: UUID,
    storage: StorageClientBase,
    req: UploadUrlRequest,
    expires_in: int = 300,
) -> UploadUrlOut:
    """Sign a direct upload for a file attached to one of the viewer's chats.

    Raises:
        InvalidRequestError: File too large or of the wrong type.
        FileUploadLimitError: Daily quota already used up.
        ApiError(E_SIGN_UPLOAD_FAILED): Storage refused to sign.
    """
    validate_file(req.file_name, req.file_type, req.file_size)
    get_owned_chat(db, viewer_id, req.chat_id)
    if not check_upload_limit(db, viewer_id).can_upload:
        raise FileUploadLimitError()

    path = build_attachment_path(viewer_id, req.chat_id, req.file_name)
    try:
        signed = storage.sign_upload(path, content_type=req.file_type, expires_in=expires_in)
    except StorageError as e:
        logger.error("upload_sign_failed", error=e.message)
        raise ApiError(ApiErrorCode.E_SIGN_UPLOAD_FAILED, "Failed to create upload URL") from e

    return UploadUrlOut(
        storage_path=signed.path,
        upload_url=signed.url,
        token=signed.token,
        expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
    )


def save_attachment(
    db: Session,
    viewer_id: UUID,
    storage: StorageClientBase,
    req: SaveAttachmentRequest,
) -> AttachmentOut:
    """Record an uploaded object against a chat.

    Raises:
        FileUploadLimitError: At the daily quota.
        InvalidRequestError: Invalid file, or a path outside the chat's prefix.
    """
    validate_file(req.file_name, req.file_type, req.file_size)
    get_owned_chat(db, viewer_id, req.chat_id)
    if not path_belongs_to(req.storage_path, viewer_id, req.chat_id):
        raise InvalidRequestError(message="Invalid storage path")
    if not check_upload_limit(db, viewer_id).can_upload:
        raise FileUploadLimitError()

    attachment = ChatAttachment(
        chat_id=req.chat_id,
        user_id=viewer_id,
        storage_path=req.storage_path,
        file_url=storage.public_url(req.storage_path),
        file_name=req.file_name,
        file_type=req.file_type,
        file_size=req.file_size,
    )
    db.add(attachment)
    db.flush()
    db.commit()

    logger.info(
        "attachment_saved",
        attachment_id=str(attachment.id),
        chat_id=str(req.chat_id),
        file_type=req.file_type,
        file_size=req.file_size,
    )
    return AttachmentOut.model_validate(attachment)


def delete_attachment(
    db: Session,
    viewer_id: UUID,
    attachment_id: UUID,
    storage: StorageClientBase | None = None,
) -> None:
    """Delete an attachment row and its stored object.

    Raises:
        NotFoundError(E_ATTACHMENT_NOT_FOUND): No such attachment.
        ForbiddenError: Attachment belongs to another user.
    """
    attachment = db.get(ChatAttachment, attachment_id)
    if attachment is None:
        raise NotFoundError(ApiErrorCode.E_ATTACHMENT_NOT_FOUND, "Attachment not found")
    if attachment.user_id != viewer_id:
        raise ForbiddenError()

    path = attachment.storage_path
    db.delete(attachment)
    db.commit()

    purge_blobs(storage, [path])
    logger.info("attachment_deleted", attachment_id=str(attachment_id))
