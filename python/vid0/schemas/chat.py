"""Chat and Message Pydantic schemas.

Request bodies accept the camelCase field names used by the web client
(``chatId``, ``projectId``...) as well as their snake_case names. Fields whose
absence has a product-specific error message are optional here and checked
by the service layer.
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

MESSAGE_ROLES = Literal["user", "assistant", "system", "data"]


# =============================================================================
# Response Schemas
# =============================================================================


class ChatOut(BaseModel):
    """Response schema for a chat."""

    id: UUID
    user_id: UUID
    project_id: UUID | None = None
    title: str | None = None
    model: str | None = None
    system_prompt: str | None = None
    public: bool
    pinned: bool
    pinned_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Attachment(BaseModel):
    """File reference carried on a message."""

    name: str
    content_type: str = Field(alias="contentType")
    url: str

    model_config = ConfigDict(populate_by_name=True)


class MessageOut(BaseModel):
    """Response schema for a message. Messages are ordered by seq within a chat."""

    id: UUID
    chat_id: UUID
    seq: int
    user_id: UUID | None = None
    role: str
    content: str | None = None
    parts: Any | None = None
    attachments: list[dict] | None = None
    message_group_id: str | None = None
    model: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeletedCountOut(BaseModel):
    """Number of rows removed by a bulk delete."""

    deleted: int


# =============================================================================
# Request Schemas
# =============================================================================


class CreateChatRequest(BaseModel):
    """Request body for creating a chat."""

    title: str | None = None
    model: str | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    project_id: UUID | None = Field(default=None, alias="projectId")

    model_config = ConfigDict(populate_by_name=True)


class UpdateChatRequest(BaseModel):
    """Partial update of a chat's title, model or visibility."""

    title: str | None = None
    model: str | None = None
    public: bool | None = None

    model_config = ConfigDict(populate_by_name=True)


class TogglePinRequest(BaseModel):
    """Request body for pinning or unpinning a chat."""

    chat_id: UUID | None = Field(default=None, alias="chatId")
    pinned: bool | None = None

    model_config = ConfigDict(populate_by_name=True)


class UpdateChatModelRequest(BaseModel):
    """Request body for switching the model of a chat."""

    chat_id: UUID | None = Field(default=None, alias="chatId")
    model: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class AddMessageRequest(BaseModel):
    """Request body for appending a message to a chat."""

    role: MESSAGE_ROLES
    content: str | None = None
    parts: Any | None = None
    attachments: list[Attachment] | None = None
    message_group_id: str | None = Field(default=None, alias="messageGroupId")
    model: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class AddMessagesBatchRequest(BaseModel):
    """Request body for appending several messages at once."""

    messages: list[AddMessageRequest]


class ChatTurn(BaseModel):
    """One turn of the conversation sent to /api/chat."""

    role: MESSAGE_ROLES
    content: Any = ""
    attachments: list[Attachment] | None = Field(default=None, alias="experimental_attachments")

    model_config = ConfigDict(populate_by_name=True)


class ChatCompletionRequest(BaseModel):
    """Request body for /api/chat.

    ``messages`` and ``chatId`` are optional at the schema level so that a
    missing field yields the product error message instead of a schema error.
    """

    messages: list[ChatTurn] | None = None
    chat_id: UUID | None = Field(default=None, alias="chatId")
    model: str | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    enable_search: bool = Field(default=False, alias="enableSearch")
    message_group_id: str | None = Field(default=None, alias="messageGroupId")

    model_config = ConfigDict(populate_by_name=True)
