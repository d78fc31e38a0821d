"""Chat and message routes.

Routes are transport-only: each calls exactly one service function.
Reads of a chat are allowed to its owner, or to anyone once it is public;
mutations are owner-only.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from vid0.api.deps import get_db, get_storage
from vid0.auth.middleware import Viewer, get_optional_viewer, get_viewer
from vid0.responses import success_response
from vid0.schemas.chat import (
    AddMessageRequest,
    AddMessagesBatchRequest,
    CreateChatRequest,
    DeletedCountOut,
    TogglePinRequest,
    UpdateChatModelRequest,
    UpdateChatRequest,
)
from vid0.services import chats as chats_service
from vid0.services import messages as messages_service
from vid0.storage import StorageClientBase

router = APIRouter(tags=["chats"])


# =============================================================================
# Chats
# =============================================================================


@router.post("/api/create-chat", status_code=201)
def create_chat(
    body: CreateChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a chat, optionally inside one of the viewer's projects.

    Errors:
        E_PROJECT_NOT_FOUND (404): projectId is not one of the viewer's projects.
    """
    chat = chats_service.create_chat(
        db,
        viewer.user_id,
        title=body.title,
        model=body.model,
        system_prompt=body.system_prompt,
        project_id=body.project_id,
    )
    return success_response(chat.model_dump(mode="json"))


@router.get("/api/chats")
def list_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """The viewer's chats, pinned first."""
    chats = chats_service.list_chats(db, viewer.user_id)
    return success_response([c.model_dump(mode="json") for c in chats])


@router.get("/api/chats/{chat_id}")
def get_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    chat = chats_service.get_chat(db, viewer.user_id, chat_id)
    return success_response(chat.model_dump(mode="json"))


@router.patch("/api/chats/{chat_id}")
def update_chat(
    chat_id: UUID,
    body: UpdateChatRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Update title, model or visibility.

    Errors:
        E_CHAT_NOT_FOUND (404)
        E_FORBIDDEN (403): Chat belongs to another user.
    """
    chat = chats_service.update_chat(
        db, viewer.user_id, chat_id, title=body.title, model=body.model, public=body.public
    )
    return success_response(chat.model_dump(mode="json"))


@router.delete("/api/chats/{chat_id}", status_code=204)
def delete_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> Response:
    """Delete a chat with its messages and attachments."""
    chats_service.delete_chat(db, viewer.user_id, chat_id, storage=storage)
    return Response(status_code=204)


@router.post("/api/toggle-chat-pin")
def toggle_chat_pin(
    body: TogglePinRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    chat = chats_service.toggle_pin(db, viewer.user_id, body.chat_id, body.pinned)
    return success_response(chat.model_dump(mode="json"))


@router.post("/api/update-chat-model")
def update_chat_model(
    body: UpdateChatModelRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    chat = chats_service.update_model(db, viewer.user_id, body.chat_id, body.model)
    return success_response(chat.model_dump(mode="json"))


# =============================================================================
# Messages
# =============================================================================


@router.get("/api/chats/{chat_id}/messages")
def list_messages(
    chat_id: UUID,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Messages in creation order; public chats are readable by anyone signed in."""
    messages = messages_service.list_messages(db, viewer.user_id if viewer else None, chat_id)
    return success_response([m.model_dump(mode="json") for m in messages])


@router.post("/api/chats/{chat_id}/messages", status_code=201)
def add_message(
    chat_id: UUID,
    body: AddMessageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    message = messages_service.add_message(db, viewer.user_id, chat_id, body)
    return success_response(message.model_dump(mode="json"))


@router.post("/api/chats/{chat_id}/messages/batch", status_code=201)
def add_messages_batch(
    chat_id: UUID,
    body: AddMessagesBatchRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    messages = messages_service.add_messages_batch(db, viewer.user_id, chat_id, body.messages)
    return success_response([m.model_dump(mode="json") for m in messages])


@router.delete("/api/chats/{chat_id}/messages")
def delete_messages(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    from_: Annotated[datetime | None, Query(alias="from")] = None,
) -> dict:
    """Delete messages created at or after ``from``, or all of them.

    Returns:
        {"data": {"deleted": N}}
    """
    if from_ is not None:
        deleted = messages_service.delete_messages_from(db, viewer.user_id, chat_id, from_)
    else:
        deleted = messages_service.clear_messages(db, viewer.user_id, chat_id)
    return success_response(DeletedCountOut(deleted=deleted).model_dump(mode="json"))


# =============================================================================
# Public share
# =============================================================================


@router.get("/api/public/chats/{chat_id}")
def get_public_chat(
    chat_id: UUID,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """A public chat and its messages; no authentication needed."""
    chat = chats_service.get_public_chat(db, chat_id)
    messages = messages_service.list_public_messages(db, chat_id)
    return success_response(
        {
            "chat": chat.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in messages],
        }
    )
