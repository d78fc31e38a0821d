"""Message service layer.

Messages are ordered by ``seq``, a per-chat counter allocated from
``chats.next_seq`` under a row lock, so order never depends on clock
resolution. Read access follows the chat (owner, or public); writes are
owner-only.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from vid0.db.models import Chat, Message
from vid0.errors import ApiErrorCode, NotFoundError
from vid0.logging import get_logger
from vid0.schemas.chat import AddMessageRequest, MessageOut
from vid0.services.chats import bump_chat, get_owned_chat, get_visible_chat_or_404

logger = get_logger(__name__)

DEFAULT_LAST_MESSAGES = 2


def message_to_out(message: Message) -> MessageOut:
    return MessageOut.model_validate(message)


def assign_next_message_seq(db: Session, chat_id: UUID) -> int:
    """Reserve the next seq for a chat.

    Must run inside the caller's transaction; does not commit. The chat row
    is locked (FOR UPDATE on PostgreSQL) until that transaction ends.

    Raises:
        NotFoundError(E_CHAT_NOT_FOUND): If the chat does not exist.
    """
    current = db.execute(
        select(Chat.next_seq).where(Chat.id == chat_id).with_for_update()
    ).scalar_one_or_none()
    if current is None:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")

    db.execute(
        update(Chat)
        .where(Chat.id == chat_id)
        .values(next_seq=Chat.next_seq + 1)
        .execution_options(synchronize_session=False)
    )
    return current


def _attachments_json(attachments: list[Any] | None) -> list[dict] | None:
    if attachments is None:
        return None
    return [
        a.model_dump(by_alias=True) if hasattr(a, "model_dump") else dict(a) for a in attachments
    ]


def insert_message(
    db: Session,
    chat: Chat,
    viewer_id: UUID | None,
    role: str,
    content: str | None = None,
    parts: Any = None,
    attachments: list[Any] | None = None,
    message_group_id: str | None = None,
    model: str | None = None,
) -> Message:
    """Append one message to a chat and bump it. Does not commit.

    ``user_id`` is recorded only for messages with role ``user``.
    """
    seq = assign_next_message_seq(db, chat.id)
    message = Message(
        chat_id=chat.id,
        seq=seq,
        user_id=viewer_id if role == "user" else None,
        role=role,
        content=content,
        parts=parts,
        attachments=_attachments_json(attachments),
        message_group_id=message_group_id,
        model=model,
    )
    db.add(message)
    bump_chat(db, chat)
    return message


# =============================================================================
# Queries
# =============================================================================


def _ordered_messages(db: Session, chat_id: UUID) -> list[Message]:
    return list(
        db.scalars(select(Message).where(Message.chat_id == chat_id).order_by(Message.seq))
    )


def list_messages(db: Session, viewer_id: UUID | None, chat_id: UUID) -> list[MessageOut]:
    get_visible_chat_or_404(db, viewer_id, chat_id)
    return [message_to_out(m) for m in _ordered_messages(db, chat_id)]


def list_public_messages(db: Session, chat_id: UUID) -> list[MessageOut]:
    """Messages of a shared chat; private or missing chats yield E_CHAT_NOT_FOUND."""
    chat = db.get(Chat, chat_id)
    if chat is None or not chat.public:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return [message_to_out(m) for m in _ordered_messages(db, chat_id)]


def get_last_messages(
    db: Session, viewer_id: UUID | None, chat_id: UUID, limit: int = DEFAULT_LAST_MESSAGES
) -> list[MessageOut]:
    """The newest ``limit`` messages, oldest first."""
    get_visible_chat_or_404(db, viewer_id, chat_id)
    newest = db.scalars(
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.seq.desc())
        .limit(max(limit, 0))
    ).all()
    return [message_to_out(m) for m in reversed(newest)]


def count_messages(db: Session, chat_id: UUID) -> int:
    return db.scalar(select(func.count()).select_from(Message).where(Message.chat_id == chat_id))


# =============================================================================
# Mutations
# =============================================================================


def add_message(
    db: Session, viewer_id: UUID, chat_id: UUID, request: AddMessageRequest
) -> MessageOut:
    chat = get_owned_chat(db, viewer_id, chat_id)
    message = insert_message(
        db,
        chat,
        viewer_id,
        role=request.role,
        content=request.content,
        parts=request.parts,
        attachments=request.attachments,
        message_group_id=request.message_group_id,
        model=request.model,
    )
    db.flush()
    db.commit()
    return message_to_out(message)


def add_messages_batch(
    db: Session, viewer_id: UUID, chat_id: UUID, requests: list[AddMessageRequest]
) -> list[MessageOut]:
    """Append several messages in one transaction, in the order given."""
    chat = get_owned_chat(db, viewer_id, chat_id)
    messages = [
        insert_message(
            db,
            chat,
            viewer_id,
            role=r.role,
            content=r.content,
            parts=r.parts,
            attachments=r.attachments,
            message_group_id=r.message_group_id,
            model=r.model,
        )
        for r in requests
    ]
    db.flush()
    db.commit()

    logger.info("messages_batch_added", chat_id=str(chat_id), count=len(messages))
    return [message_to_out(m) for m in messages]


def delete_messages_from(
    db: Session, viewer_id: UUID, chat_id: UUID, timestamp: datetime
) -> int:
    """Delete messages created at or after ``timestamp`` (message edit). Returns the count."""
    get_owned_chat(db, viewer_id, chat_id)
    result = db.execute(
        delete(Message)
        .where(Message.chat_id == chat_id, Message.created_at >= timestamp)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    logger.info("messages_deleted_from", chat_id=str(chat_id), count=result.rowcount)
    return result.rowcount


def clear_messages(db: Session, viewer_id: UUID, chat_id: UUID) -> int:
    """Delete every message of a chat. Returns the count."""
    get_owned_chat(db, viewer_id, chat_id)
    result = db.execute(
        delete(Message)
        .where(Message.chat_id == chat_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    logger.info("messages_cleared", chat_id=str(chat_id), count=result.rowcount)
    return result.rowcount
