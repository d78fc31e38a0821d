"""Chat attachment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UploadUrlRequest(BaseModel):
    """Request for a signed upload URL."""

    chat_id: UUID = Field(alias="chatId")
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class UploadUrlOut(BaseModel):
    """Signed upload target."""

    storage_path: str
    upload_url: str
    token: str | None = None
    expires_at: datetime


class SaveAttachmentRequest(BaseModel):
    """Record an uploaded file against a chat."""

    chat_id: UUID = Field(alias="chatId")
    storage_path: str = Field(alias="storagePath")
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize", ge=0)

    model_config = ConfigDict(populate_by_name=True)


class AttachmentOut(BaseModel):
    """Stored attachment."""

    id: UUID
    chat_id: UUID
    file_name: str
    file_type: str
    file_size: int
    file_url: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UploadLimitOut(BaseModel):
    """Today's upload count against the daily quota."""

    count: int
    limit: int
    can_upload: bool
