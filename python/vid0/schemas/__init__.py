"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from vid0.schemas.attachment import (
    AttachmentOut,
    SaveAttachmentRequest,
    UploadLimitOut,
    UploadUrlOut,
    UploadUrlRequest,
)
from vid0.schemas.chat import (
    AddMessageRequest,
    AddMessagesBatchRequest,
    ChatCompletionRequest,
    ChatOut,
    ChatTurn,
    CreateChatRequest,
    DeletedCountOut,
    MessageOut,
    TogglePinRequest,
    UpdateChatModelRequest,
    UpdateChatRequest,
)
from vid0.schemas.keys import (
    ModelOut,
    ModelsRefreshOut,
    ProviderKeyStatusOut,
    ProviderOut,
    SaveUserKeyOut,
    SaveUserKeyRequest,
    UserApiKeyOut,
)
from vid0.schemas.project import ProjectNameRequest, ProjectOut
from vid0.schemas.user import (
    CreateGuestRequest,
    FavoriteModelsOut,
    FavoriteModelsRequest,
    FeedbackOut,
    GuestUserOut,
    PreferencesOut,
    RateLimitsOut,
    UpdatePreferencesRequest,
    UserOut,
)

__all__ = [
    # Chat schemas
    "ChatOut",
    "CreateChatRequest",
    "UpdateChatRequest",
    "TogglePinRequest",
    "UpdateChatModelRequest",
    "ChatTurn",
    "ChatCompletionRequest",
    # Message schemas
    "MessageOut",
    "AddMessageRequest",
    "AddMessagesBatchRequest",
    "DeletedCountOut",
    # Project schemas
    "ProjectOut",
    "ProjectNameRequest",
    # Key and model schemas
    "ModelOut",
    "ModelsRefreshOut",
    "ProviderOut",
    "UserApiKeyOut",
    "SaveUserKeyRequest",
    "SaveUserKeyOut",
    "ProviderKeyStatusOut",
    # User schemas
    "UserOut",
    "CreateGuestRequest",
    "GuestUserOut",
    "PreferencesOut",
    "UpdatePreferencesRequest",
    "FavoriteModelsRequest",
    "FavoriteModelsOut",
    "RateLimitsOut",
    "FeedbackOut",
    # Attachment schemas
    "UploadUrlRequest",
    "UploadUrlOut",
    "SaveAttachmentRequest",
    "AttachmentOut",
    "UploadLimitOut",
]
