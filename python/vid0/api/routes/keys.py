"""User API key (BYOK) routes.

Responses never include ciphertext, nonces or key versions; only the last
four characters of a key are ever returned.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from vid0.api.deps import get_app_settings, get_db
from vid0.auth.middleware import Viewer, get_viewer
from vid0.config import Settings
from vid0.responses import success_response
from vid0.schemas.keys import DeleteUserKeyRequest, ProviderOut, SaveUserKeyRequest
from vid0.services import user_keys as user_keys_service

router = APIRouter(tags=["keys"])

PROVIDER_NAMES = {
    "openai": "OpenAI",
    "mistral": "Mistral",
    "perplexity": "Perplexity",
    "google": "Google",
    "anthropic": "Anthropic",
    "xai": "xAI",
    "openrouter": "OpenRouter",
}


@router.get("/api/user-keys")
def list_keys(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    keys = user_keys_service.list_user_keys(db, viewer.user_id)
    return success_response([k.model_dump(mode="json") for k in keys])


@router.post("/api/user-keys")
def save_key(
    body: SaveUserKeyRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    response: Response,
) -> dict:
    """Add or replace the key for a provider.

    Returns:
        201 for a new key, 200 when an existing key was replaced.

    Errors:
        E_INVALID_REQUEST (400): provider or apiKey missing.
        E_KEY_PROVIDER_INVALID (400): Unknown provider.
        E_KEY_INVALID_FORMAT (400): Key too short or contains whitespace.
    """
    result = user_keys_service.save_user_key(db, viewer.user_id, body.provider, body.api_key)
    response.status_code = 201 if result.is_new_key else 200
    return success_response(result.model_dump(mode="json"))


@router.delete("/api/user-keys", status_code=204)
def delete_key(
    body: DeleteUserKeyRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    user_keys_service.delete_user_key(db, viewer.user_id, body.provider)
    return Response(status_code=204)


@router.get("/api/user-key-status")
def key_status(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Per provider: whether the user or the platform has a key."""
    statuses = user_keys_service.get_provider_key_status(db, viewer.user_id, settings)
    return success_response([s.model_dump(mode="json") for s in statuses])


@router.get("/api/providers")
def list_providers(settings: Annotated[Settings, Depends(get_app_settings)]) -> dict:
    providers = [
        ProviderOut(
            id=provider,
            name=name,
            env_key_configured=settings.platform_key_for(provider) is not None,
        )
        for provider, name in PROVIDER_NAMES.items()
        if settings.provider_enabled(provider)
    ]
    return success_response([p.model_dump(mode="json") for p in providers])
