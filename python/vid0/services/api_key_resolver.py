"""API key resolution for LLM requests.

The user's own key (BYOK) wins; otherwise the platform key for the provider
is used. Kept outside the LLM adapter layer, which has no database access.
"""

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from vid0.config import Settings
from vid0.db.models import UserApiKey
from vid0.logging import get_logger
from vid0.services.crypto import CryptoError, decrypt_api_key
from vid0.services.llm.errors import LLMError, LLMErrorClass

logger = get_logger(__name__)


@dataclass
class ResolvedKey:
    """Result of API key resolution."""

    api_key: str
    mode: Literal["platform", "byok"]
    provider: str
    user_key_id: str | None = None  # Set if BYOK


def _user_key(db: Session, user_id: UUID, provider: str) -> tuple[str, str] | None:
    row = db.scalars(
        select(UserApiKey).where(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
    ).first()
    if row is None:
        return None
    try:
        plaintext = decrypt_api_key(row.encrypted_key, row.key_nonce, row.master_key_version)
    except CryptoError as e:
        logger.warning("user_key_decrypt_failed", provider=provider, error=str(e))
        return None
    return plaintext, str(row.id)


def resolve_api_key(
    db: Session, user_id: UUID | None, provider: str, settings: Settings
) -> ResolvedKey:
    """Resolve the API key to use for a provider call.

    Raises:
        LLMError(INVALID_KEY): Neither a user key nor a platform key exists.
    """
    if user_id is not None:
        found = _user_key(db, user_id, provider)
        if found is not None:
            api_key, key_id = found
            return ResolvedKey(api_key=api_key, mode="byok", provider=provider, user_key_id=key_id)

    platform_key = settings.platform_key_for(provider)
    if platform_key:
        return ResolvedKey(api_key=platform_key, mode="platform", provider=provider)

    raise LLMError(
        error_class=LLMErrorClass.INVALID_KEY,
        message=f"No API key available for {provider}",
    )


def has_api_key(db: Session, user_id: UUID | None, provider: str, settings: Settings) -> bool:
    """Whether resolve_api_key would find a key, without decrypting anything."""
    if settings.platform_key_for(provider):
        return True
    if user_id is None:
        return False
    return (
        db.scalars(
            select(UserApiKey.id).where(
                UserApiKey.user_id == user_id, UserApiKey.provider == provider
            )
        ).first()
        is not None
    )
