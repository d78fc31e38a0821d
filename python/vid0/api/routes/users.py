"""Current user, guest accounts and preferences."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vid0.api.deps import get_db
from vid0.auth.middleware import Viewer, get_viewer
from vid0.responses import success_response
from vid0.schemas.user import (
    CreateGuestRequest,
    FavoriteModelsRequest,
    SyncUserRequest,
    UpdatePreferencesRequest,
)
from vid0.services import preferences as preferences_service
from vid0.services import users as users_service

router = APIRouter(tags=["users"])


@router.get("/api/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Profile and counters of the signed-in user."""
    user = users_service.get_current_user(db, viewer.user_id)
    return success_response(user.model_dump(mode="json"))


@router.post("/api/users/sync")
def sync_user(
    body: SyncUserRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user = users_service.sync_user(
        db,
        viewer.user_id,
        email=body.email,
        display_name=body.display_name,
        profile_image=body.profile_image,
        system_prompt=body.system_prompt,
    )
    return success_response(user.model_dump(mode="json"))


@router.post("/api/create-guest")
def create_guest(body: CreateGuestRequest) -> dict:
    """Echo a validated guest identity for a client-generated id.

    Errors:
        E_INVALID_REQUEST (400): "Missing userId", "Invalid userId" or
        "Invalid userId format".
    """
    guest = users_service.create_guest(body.user_id)
    return success_response(guest.model_dump(mode="json"))


@router.get("/api/user-preferences")
def get_preferences(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    prefs = preferences_service.get_preferences(db, viewer.user_id)
    return success_response(prefs.model_dump(mode="json"))


@router.put("/api/user-preferences")
def update_preferences(
    body: UpdatePreferencesRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Partial update of the signed-in user's preferences."""
    prefs = preferences_service.update_preferences(db, viewer.user_id, body)
    return success_response(prefs.model_dump(mode="json"))


@router.get("/api/user-preferences/favorite-models")
def get_favorite_models(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    favorites = users_service.get_favorite_models(db, viewer.user_id)
    return success_response(favorites.model_dump(mode="json"))


@router.post("/api/user-preferences/favorite-models")
def update_favorite_models(
    body: FavoriteModelsRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    favorites = users_service.update_favorite_models(db, viewer.user_id, body.favorite_models)
    return success_response(favorites.model_dump(mode="json"))
