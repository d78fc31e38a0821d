"""User API Key and Model Pydantic schemas.

No secrets ever leave the backend: key responses never include
encrypted_key, key_nonce or master_key_version. The fingerprint is the last
4 chars of the original key.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Model Catalog Schemas
# =============================================================================


class ModelOut(BaseModel):
    """A model from the catalog, with access flags for the current caller."""

    id: str
    name: str
    provider: str
    context_window: int
    free: bool
    pro: bool
    requires_auth: bool
    accessible: bool


class ModelsRefreshOut(BaseModel):
    """Result of rebuilding the model cache."""

    message: str
    models: list[ModelOut]
    timestamp: datetime
    count: int


class ProviderOut(BaseModel):
    """A provider that accepts user API keys."""

    id: str
    name: str
    env_key_configured: bool


# =============================================================================
# User API Key Schemas
# =============================================================================


class UserApiKeyOut(BaseModel):
    """Safe view of a stored API key.

    Excluded fields (never present in response):
    - encrypted_key
    - key_nonce
    - master_key_version
    """

    id: UUID
    provider: str
    key_fingerprint: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaveUserKeyRequest(BaseModel):
    """Request body for adding or replacing a provider key (upsert)."""

    provider: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")

    model_config = ConfigDict(populate_by_name=True)


class DeleteUserKeyRequest(BaseModel):
    """Request body for removing a provider key."""

    provider: str | None = None


class SaveUserKeyOut(BaseModel):
    """Outcome of an upsert."""

    success: bool
    is_new_key: bool
    message: str
    key: UserApiKeyOut


class ProviderKeyStatusOut(BaseModel):
    """Whether a provider can be served by the user's key or a platform key."""

    provider: str
    has_user_key: bool
    has_env_key: bool
