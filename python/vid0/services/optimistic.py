"""Optimistic-update reconciliation for chat and message lists.

A client holds the last server snapshot plus a queue of pending operations
it has applied locally but the server has not confirmed. The list it shows
is a pure function of the two:

    displayed = reconcile_chats(server_chats, pending_ops)

Records are plain dicts keyed by ``id`` (the serialized ChatOut/MessageOut
shape). Chats created locally carry an ``optimistic-`` id until the server
assigns a real one.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

OPTIMISTIC_ID_PREFIX = "optimistic-"

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class AddOp:
    record: Mapping[str, Any]


@dataclass(frozen=True)
class UpdateOp:
    id: str
    changes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteOp:
    id: str


PendingOp = AddOp | UpdateOp | DeleteOp


def is_optimistic_id(record_id: Any) -> bool:
    return isinstance(record_id, str) and record_id.startswith(OPTIMISTIC_ID_PREFIX)


def _timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return _EPOCH
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _apply(server: Sequence[Mapping[str, Any]], ops: Iterable[PendingOp]) -> list[dict]:
    result = [dict(r) for r in server]
    for op in ops:
        if isinstance(op, AddOp):
            record_id = op.record["id"]
            present = any(str(r["id"]) == str(record_id) for r in result)
            if is_optimistic_id(record_id) or not present:
                result = [dict(op.record)] + [r for r in result if str(r["id"]) != str(record_id)]
        elif isinstance(op, UpdateOp):
            result = [
                {**r, **op.changes} if str(r["id"]) == str(op.id) else r for r in result
            ]
        elif isinstance(op, DeleteOp):
            result = [r for r in result if str(r["id"]) != str(op.id)]
    return result


def reconcile_chats(
    server_chats: Sequence[Mapping[str, Any]], pending_ops: Iterable[PendingOp]
) -> list[dict]:
    """Apply pending ops in order, then sort by ``updated_at or created_at`` descending.

    An add is applied when its id is optimistic or the server list lacks it;
    it goes to the front, replacing any same-id entry.
    """
    chats = _apply(server_chats, pending_ops)
    chats.sort(key=lambda c: _timestamp(c.get("updated_at") or c.get("created_at")), reverse=True)
    return chats


def pinned_chats(chats: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Pinned chats outside any project, most recently pinned first."""
    pinned = [c for c in chats if c.get("pinned") and not c.get("project_id")]
    pinned.sort(key=lambda c: _timestamp(c.get("pinned_at")), reverse=True)
    return pinned


def reconcile_messages(
    server_messages: Sequence[Mapping[str, Any]], pending_ops: Iterable[PendingOp]
) -> list[dict]:
    """Server messages plus unconfirmed local ones, in creation order.

    Server messages keep their server order (``seq``). Pending messages the
    server already returned are dropped; the rest follow in the order they
    were added locally.
    """
    server_ids = {str(m["id"]) for m in server_messages}
    ops = [
        op
        for op in pending_ops
        if not (isinstance(op, AddOp) and str(op.record["id"]) in server_ids)
    ]

    messages = [dict(m) for m in server_messages]
    for op in ops:
        if isinstance(op, AddOp):
            messages = [m for m in messages if str(m["id"]) != str(op.record["id"])]
            messages.append(dict(op.record))
        elif isinstance(op, UpdateOp):
            messages = [
                {**m, **op.changes} if str(m["id"]) == str(op.id) else m for m in messages
            ]
        elif isinstance(op, DeleteOp):
            messages = [m for m in messages if str(m["id"]) != str(op.id)]
    return messages
