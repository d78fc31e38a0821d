"""User API key service layer (BYOK).

- Keys are encrypted at rest with XSalsa20-Poly1305 (PyNaCl SecretBox)
- Only the last 4 chars are kept in clear, as the fingerprint
- One key per (user, provider): saving again replaces the ciphertext
- Deleting removes the row

Plaintext keys never persist beyond the request and are never logged.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from vid0.config import Settings
from vid0.constants import PROVIDERS
from vid0.db.models import UserApiKey
from vid0.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from vid0.logging import get_logger
from vid0.schemas.keys import ProviderKeyStatusOut, SaveUserKeyOut, UserApiKeyOut
from vid0.services.crypto import encrypt_api_key

logger = get_logger(__name__)

VALID_PROVIDERS = frozenset(PROVIDERS)
MIN_KEY_LENGTH = 8


def _validate_provider(provider: str) -> str:
    provider = provider.strip().lower()
    if provider not in VALID_PROVIDERS:
        raise ApiError(
            ApiErrorCode.E_KEY_PROVIDER_INVALID,
            f"Unknown provider: {provider}. Must be one of: {', '.join(sorted(VALID_PROVIDERS))}",
        )
    return provider


def list_user_keys(db: Session, user_id: UUID) -> list[UserApiKeyOut]:
    """The user's stored keys, safe fields only."""
    keys = db.scalars(
        select(UserApiKey)
        .where(UserApiKey.user_id == user_id)
        .order_by(UserApiKey.provider)
    ).all()
    return [UserApiKeyOut.model_validate(k) for k in keys]


def save_user_key(
    db: Session, user_id: UUID, provider: str | None, api_key: str | None
) -> SaveUserKeyOut:
    """Add or replace the user's key for a provider.

    Raises:
        InvalidRequestError: provider or key missing.
        ApiError(E_KEY_PROVIDER_INVALID): Unknown provider.
        ApiError(E_KEY_INVALID_FORMAT): Key too short or contains whitespace.
    """
    if not provider or not api_key:
        raise InvalidRequestError(message="Provider and API key are required")

    provider = _validate_provider(provider)
    api_key = api_key.strip()
    if len(api_key) < MIN_KEY_LENGTH:
        raise ApiError(ApiErrorCode.E_KEY_INVALID_FORMAT, "API key too short")
    if any(c.isspace() for c in api_key):
        raise ApiError(ApiErrorCode.E_KEY_INVALID_FORMAT, "API key contains whitespace")

    ciphertext, nonce, version, fingerprint = encrypt_api_key(api_key)

    key = db.scalars(
        select(UserApiKey).where(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
    ).first()
    is_new_key = key is None

    if key is None:
        key = UserApiKey(
            user_id=user_id,
            provider=provider,
            encrypted_key=ciphertext,
            key_nonce=nonce,
            master_key_version=version,
            key_fingerprint=fingerprint,
        )
        db.add(key)
    else:
        key.encrypted_key = ciphertext
        key.key_nonce = nonce
        key.master_key_version = version
        key.key_fingerprint = fingerprint
        key.updated_at = datetime.now(UTC)

    db.flush()
    db.commit()

    logger.info(
        "user_key_created" if is_new_key else "user_key_updated",
        provider=provider,
        fingerprint=fingerprint,
    )
    return SaveUserKeyOut(
        success=True,
        is_new_key=is_new_key,
        message=f"API key {'saved' if is_new_key else 'updated'} successfully.",
        key=UserApiKeyOut.model_validate(key),
    )


def delete_user_key(db: Session, user_id: UUID, provider: str | None) -> None:
    """Remove the user's key for a provider.

    Raises:
        InvalidRequestError: provider missing.
        NotFoundError(E_KEY_NOT_FOUND): No key stored for that provider.
    """
    if not provider:
        raise InvalidRequestError(message="Provider is required")
    provider = _validate_provider(provider)

    key = db.scalars(
        select(UserApiKey).where(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
    ).first()
    if key is None:
        raise NotFoundError(ApiErrorCode.E_KEY_NOT_FOUND, "API key not found")

    db.delete(key)
    db.commit()

    logger.info("user_key_deleted", provider=provider, fingerprint=key.key_fingerprint)


def get_user_key_providers(db: Session, user_id: UUID) -> set[str]:
    return set(db.scalars(select(UserApiKey.provider).where(UserApiKey.user_id == user_id)))


def get_provider_key_status(
    db: Session, user_id: UUID | None, settings: Settings
) -> list[ProviderKeyStatusOut]:
    """Per provider: whether the user has a key and whether a platform key is set."""
    user_providers = get_user_key_providers(db, user_id) if user_id is not None else set()
    return [
        ProviderKeyStatusOut(
            provider=provider,
            has_user_key=provider in user_providers,
            has_env_key=settings.platform_key_for(provider) is not None,
        )
        for provider in PROVIDERS
    ]
