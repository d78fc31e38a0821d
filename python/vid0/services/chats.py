"""Chat service layer.

Ownership rules:
- Reads: a chat is visible to its owner, and to anyone once it is public.
  Invisible and missing chats both return E_CHAT_NOT_FOUND.
- Mutations: only the owner may change or delete a chat. A non-owner gets
  E_FORBIDDEN and the row is left untouched.

Service functions correspond 1:1 with route handlers.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from vid0.constants import CHAT_DEFAULT_TITLE
from vid0.db.models import Chat, ChatAttachment, Message, Project
from vid0.db.session import transaction
from vid0.errors import (
    ApiErrorCode,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from vid0.logging import get_logger
from vid0.schemas.chat import ChatOut
from vid0.storage import StorageClientBase

logger = get_logger(__name__)


def chat_to_out(chat: Chat) -> ChatOut:
    return ChatOut.model_validate(chat)


# =============================================================================
# Access helpers
# =============================================================================


def get_visible_chat_or_404(db: Session, viewer_id: UUID | None, chat_id: UUID) -> Chat:
    """Load a chat the viewer may read (owner, or public).

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): Chat missing or not visible.
    """
    chat = db.get(Chat, chat_id)
    if chat is None or (chat.user_id != viewer_id and not chat.public):
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return chat


def get_owned_chat(db: Session, viewer_id: UUID, chat_id: UUID) -> Chat:
    """Load a chat for mutation.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): Chat does not exist.
        ForbiddenError: Chat belongs to another user.
    """
    chat = db.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    if chat.user_id != viewer_id:
        logger.warning("chat_mutation_forbidden", chat_id=str(chat_id))
        raise ForbiddenError()
    return chat


def _touch(chat: Chat) -> None:
    chat.updated_at = datetime.now(UTC)


# =============================================================================
# Queries
# =============================================================================


def list_chats(db: Session, viewer_id: UUID) -> list[ChatOut]:
    """All of the viewer's chats: pinned first by pin time, then most recently updated."""
    chats = db.scalars(
        select(Chat)
        .where(Chat.user_id == viewer_id)
        .order_by(
            Chat.pinned.desc(),
            Chat.pinned_at.desc().nulls_last(),
            Chat.updated_at.desc(),
            Chat.id.desc(),
        )
    ).all()
    return [chat_to_out(c) for c in chats]


def list_chats_for_project(db: Session, viewer_id: UUID, project_id: UUID) -> list[ChatOut]:
    """Chats in one of the viewer's projects, most recently updated first."""
    project = db.get(Project, project_id)
    if project is None or project.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_PROJECT_NOT_FOUND, "Project not found")

    chats = db.scalars(
        select(Chat)
        .where(Chat.user_id == viewer_id, Chat.project_id == project_id)
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
    ).all()
    return [chat_to_out(c) for c in chats]


def get_chat(db: Session, viewer_id: UUID | None, chat_id: UUID) -> ChatOut:
    return chat_to_out(get_visible_chat_or_404(db, viewer_id, chat_id))


def get_public_chat(db: Session, chat_id: UUID) -> ChatOut:
    """A chat shared by link; private chats are reported as missing."""
    chat = db.get(Chat, chat_id)
    if chat is None or not chat.public:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return chat_to_out(chat)


# =============================================================================
# Mutations
# =============================================================================


def create_chat(
    db: Session,
    viewer_id: UUID,
    title: str | None = None,
    model: str | None = None,
    system_prompt: str | None = None,
    project_id: UUID | None = None,
) -> ChatOut:
    """Create a private, unpinned chat.

    Raises:
        NotFoundError(E_PROJECT_NOT_FOUND): project_id is not one of the viewer's projects.
    """
    if project_id is not None:
        project = db.get(Project, project_id)
        if project is None or project.user_id != viewer_id:
            raise NotFoundError(ApiErrorCode.E_PROJECT_NOT_FOUND, "Project not found")

    chat = Chat(
        user_id=viewer_id,
        title=title or CHAT_DEFAULT_TITLE,
        model=model,
        system_prompt=system_prompt,
        project_id=project_id,
        public=False,
        pinned=False,
    )
    db.add(chat)
    db.flush()
    db.commit()

    logger.info("chat_created", chat_id=str(chat.id), has_project=project_id is not None)
    return chat_to_out(chat)


def update_chat(
    db: Session,
    viewer_id: UUID,
    chat_id: UUID,
    title: str | None = None,
    model: str | None = None,
    public: bool | None = None,
) -> ChatOut:
    """Apply the supplied fields; omitted fields are left alone."""
    chat = get_owned_chat(db, viewer_id, chat_id)
    if title is not None:
        chat.title = title
    if model is not None:
        chat.model = model
    if public is not None:
        chat.public = public
    _touch(chat)
    db.flush()
    db.commit()
    return chat_to_out(chat)


def update_title(db: Session, viewer_id: UUID, chat_id: UUID, title: str) -> ChatOut:
    return update_chat(db, viewer_id, chat_id, title=title)


def update_model(db: Session, viewer_id: UUID, chat_id: UUID | None, model: str | None) -> ChatOut:
    """Switch a chat's model.

    Raises:
        InvalidRequestError: chat id or model missing.
    """
    if chat_id is None or not model:
        raise InvalidRequestError(message="Missing chatId or model")
    return update_chat(db, viewer_id, chat_id, model=model)


def set_public(db: Session, viewer_id: UUID, chat_id: UUID, public: bool = True) -> ChatOut:
    return update_chat(db, viewer_id, chat_id, public=public)


def toggle_pin(
    db: Session, viewer_id: UUID, chat_id: UUID | None, pinned: bool | None
) -> ChatOut:
    """Pin or unpin a chat. Pinning stamps pinned_at; unpinning clears it.

    Raises:
        InvalidRequestError: chat id or pinned flag missing.
    """
    if chat_id is None or pinned is None:
        raise InvalidRequestError(message="Missing chatId or pinned")

    chat = get_owned_chat(db, viewer_id, chat_id)
    now = datetime.now(UTC)
    chat.pinned = pinned
    chat.pinned_at = now if pinned else None
    chat.updated_at = now
    db.flush()
    db.commit()

    logger.info("chat_pin_toggled", chat_id=str(chat_id), pinned=pinned)
    return chat_to_out(chat)


def bump_chat(db: Session, chat: Chat) -> None:
    """Mark a chat as updated now, without committing."""
    _touch(chat)


def delete_chat_rows(db: Session, chat_ids: list[UUID]) -> list[str]:
    """Delete chats and everything hanging off them, children first.

    Does not commit. Returns the storage paths of deleted attachments so the
    caller can remove the blobs once the transaction has committed.
    """
    if not chat_ids:
        return []
    paths = list(
        db.scalars(
            select(ChatAttachment.storage_path).where(ChatAttachment.chat_id.in_(chat_ids))
        )
    )
    db.execute(delete(Message).where(Message.chat_id.in_(chat_ids)))
    db.execute(delete(ChatAttachment).where(ChatAttachment.chat_id.in_(chat_ids)))
    db.execute(delete(Chat).where(Chat.id.in_(chat_ids)))
    return paths


def purge_blobs(storage: StorageClientBase | None, paths: list[str]) -> None:
    """Remove stored attachment blobs; failures are logged by the client."""
    if storage is None:
        return
    for path in paths:
        storage.delete_object(path)


def delete_chat(
    db: Session, viewer_id: UUID, chat_id: UUID, storage: StorageClientBase | None = None
) -> None:
    """Delete a chat with its messages and attachments (including stored files)."""
    get_owned_chat(db, viewer_id, chat_id)

    with transaction(db):
        paths = delete_chat_rows(db, [chat_id])
    db.expire_all()
    purge_blobs(storage, paths)

    logger.info("chat_deleted", chat_id=str(chat_id), attachments=len(paths))
