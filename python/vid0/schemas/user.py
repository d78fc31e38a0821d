"""User, preferences, usage and feedback schemas."""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

GUEST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-:@.]{1,128}$")

# =============================================================================
# Users
# =============================================================================


class UserOut(BaseModel):
    """Profile of the current user."""

    id: UUID
    email: str | None = None
    display_name: str | None = None
    profile_image: str | None = None
    anonymous: bool
    premium: bool
    message_count: int
    daily_message_count: int
    daily_pro_message_count: int
    favorite_models: list[str] | None = None
    system_prompt: str | None = None
    last_active_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SyncUserRequest(BaseModel):
    """Profile fields pushed by the client after sign-in."""

    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    profile_image: str | None = Field(default=None, alias="profileImage")
    system_prompt: str | None = Field(default=None, alias="systemPrompt")

    model_config = ConfigDict(populate_by_name=True)


class CreateGuestRequest(BaseModel):
    """Request body for creating a guest identity."""

    user_id: str = Field(default="", alias="userId", validate_default=True)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("user_id", mode="before")
    @classmethod
    def validate_user_id(cls, v: Any) -> str:
        """Trim the client-generated id and check its characters."""
        if not v:
            raise ValueError("Missing userId")
        if not isinstance(v, str):
            raise ValueError("Invalid userId")
        v = v.strip()
        if not GUEST_ID_PATTERN.match(v):
            raise ValueError("Invalid userId format")
        return v


class GuestUserOut(BaseModel):
    """Guest account as returned to the client."""

    id: str
    anonymous: bool
    message_count: int
    daily_message_count: int


# =============================================================================
# Preferences
# =============================================================================


class PreferencesOut(BaseModel):
    """Display preferences for the current user."""

    layout: str
    prompt_suggestions: bool
    show_tool_invocations: bool
    show_conversation_previews: bool
    multi_model_enabled: bool
    hidden_models: list[str]

    model_config = ConfigDict(from_attributes=True)


class UpdatePreferencesRequest(BaseModel):
    """Partial preferences update; omitted fields are left unchanged.

    Accepts the web client's camelCase keys as well as snake_case. Unknown
    keys are ignored.
    """

    layout: str | None = None
    prompt_suggestions: bool | None = Field(default=None, alias="promptSuggestions")
    show_tool_invocations: bool | None = Field(default=None, alias="showToolInvocations")
    show_conversation_previews: bool | None = Field(
        default=None, alias="showConversationPreviews"
    )
    multi_model_enabled: bool | None = Field(default=None, alias="multiModelEnabled")
    hidden_models: list[str] | None = Field(default=None, alias="hiddenModels")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("layout", mode="before")
    @classmethod
    def validate_layout(cls, v: Any) -> Any:
        if v is not None and not isinstance(v, str):
            raise ValueError("layout must be a string")
        return v

    @field_validator(
        "prompt_suggestions",
        "show_tool_invocations",
        "show_conversation_previews",
        "multi_model_enabled",
        mode="before",
    )
    @classmethod
    def validate_flag(cls, v: Any, info: ValidationInfo) -> Any:
        # Reject "yes" / 1 instead of coercing them
        if v is not None and not isinstance(v, bool):
            raise ValueError(f"{info.field_name} must be a boolean")
        return v

    @field_validator("hidden_models", mode="before")
    @classmethod
    def validate_hidden_models(cls, v: Any) -> Any:
        if v is None:
            return v
        if not isinstance(v, list):
            raise ValueError("hidden_models must be an array")
        if not all(isinstance(model_id, str) for model_id in v):
            raise ValueError("All hidden_models must be strings")
        return v

    def updates(self) -> dict[str, Any]:
        """Supplied fields keyed by column name."""
        return self.model_dump(exclude_none=True)


class FavoriteModelsRequest(BaseModel):
    """Replacement list of favorite model ids."""

    favorite_models: list[str] | None = Field(
        default=None, alias="favoriteModels", validate_default=True
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("favorite_models", mode="before")
    @classmethod
    def validate_favorite_models(cls, v: Any) -> Any:
        if not isinstance(v, list):
            raise ValueError("favorite_models must be an array")
        if not all(isinstance(model_id, str) for model_id in v):
            raise ValueError("All favorite_models must be strings")
        return v


class FavoriteModelsOut(BaseModel):
    """Favorite model ids for the current user."""

    favorite_models: list[str]


# =============================================================================
# Usage
# =============================================================================


class UsageStatusOut(BaseModel):
    """Result of a usage check."""

    can_send: bool
    remaining: int
    limit: int
    count: int
    error: str | None = None


class RateLimitsOut(BaseModel):
    """Daily counters as shown in the client."""

    daily_count: int = Field(serialization_alias="dailyCount")
    daily_pro_count: int = Field(serialization_alias="dailyProCount")
    daily_limit: int = Field(serialization_alias="dailyLimit")
    remaining: int
    remaining_pro: int = Field(serialization_alias="remainingPro")


# =============================================================================
# Feedback
# =============================================================================


class FeedbackRequest(BaseModel):
    """Request body for submitting feedback."""

    message: str | None = None


class FeedbackOut(BaseModel):
    """Stored feedback entry."""

    id: UUID
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
