"""Token estimation and context compaction for long chats.

Token counts are estimated at four characters per token. When a
conversation's estimate exceeds the compaction threshold, older messages
are folded into a single system summary message and only the most recent
messages are kept verbatim.

Messages here are plain dicts with ``role`` and ``content`` keys, the same
shape the chat endpoint receives.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from vid0.constants import (
    ANTHROPIC_BETA_HEADERS,
    CONTEXT_COMPACTION_THRESHOLD,
    CONTEXT_PRESERVE_RECENT_MESSAGES,
)
from vid0.logging import get_logger

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4
SUMMARY_PREFIX = "[Context Summary]\n"
ANTHROPIC_BETA_HEADER = "anthropic-beta"

TRACKED_ROLES = ("system", "user", "assistant", "tool")

NoteCategory = Literal["discovery", "decision", "pattern", "issue", "todo"]

NOTE_CATEGORY_EMOJI: dict[str, str] = {
    "discovery": "\U0001f50d",
    "decision": "✅",
    "pattern": "\U0001f4cb",
    "issue": "⚠️",
    "todo": "\U0001f4dd",
}


@dataclass
class TokenEstimate:
    total: int = 0
    by_role: dict[str, int] = field(default_factory=lambda: dict.fromkeys(TRACKED_ROLES, 0))


@dataclass
class CompactionResult:
    compacted: bool
    original_count: int
    final_count: int
    tokens_saved: int
    messages: list[dict[str, Any]]
    summary: str | None = None


@dataclass(frozen=True)
class StructuredNote:
    timestamp: datetime
    category: NoteCategory
    content: str
    metadata: dict[str, Any] | None = None


def estimate_tokens(text: str | None) -> int:
    """Estimate tokens for a string: 0 for empty, otherwise ceil(len / 4)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, separators=(",", ":"), default=str)


def estimate_context_tokens(messages: list[dict[str, Any]]) -> TokenEstimate:
    """Estimate tokens for a conversation, broken down by role.

    Non-string content (multi-part messages) is JSON-serialized before
    counting. Roles outside system/user/assistant/tool count toward the
    total only.
    """
    estimate = TokenEstimate()
    for message in messages:
        tokens = estimate_tokens(_content_text(message.get("content")))
        estimate.total += tokens
        role = message.get("role")
        if role in estimate.by_role:
            estimate.by_role[role] += tokens
    return estimate


def should_compact(
    messages: list[dict[str, Any]], threshold: int = CONTEXT_COMPACTION_THRESHOLD
) -> bool:
    return estimate_context_tokens(messages).total > threshold


def _placeholder_summary(older: list[dict[str, Any]]) -> str:
    user_count = sum(1 for m in older if m.get("role") == "user")
    assistant_count = sum(1 for m in older if m.get("role") == "assistant")
    return (
        f"Previous conversation context ({len(older)} messages):\n"
        f"- User messages: {user_count}\n"
        f"- Assistant responses: {assistant_count}\n"
        "- Topics discussed: not yet summarized\n"
        "- Key decisions: not yet extracted\n"
        "- Action items: not yet extracted"
    )


def compact_context(
    messages: list[dict[str, Any]],
    threshold: int = CONTEXT_COMPACTION_THRESHOLD,
    preserve_recent: int = CONTEXT_PRESERVE_RECENT_MESSAGES,
) -> CompactionResult:
    """Fold older messages into one summary message when over the threshold.

    Returns the input list unchanged (``compacted=False``) when the estimate
    is at or below the threshold, or when every message falls inside the
    preserved window.
    """
    estimate = estimate_context_tokens(messages)
    unchanged = CompactionResult(
        compacted=False,
        original_count=len(messages),
        final_count=len(messages),
        tokens_saved=0,
        messages=messages,
    )
    if estimate.total <= threshold:
        return unchanged

    split = max(0, len(messages) - max(preserve_recent, 0))
    older, recent = messages[:split], messages[split:]
    if not older:
        return unchanged

    summary = _placeholder_summary(older)
    compacted = [{"role": "system", "content": SUMMARY_PREFIX + summary}, *recent]
    saved = estimate.total - estimate_context_tokens(compacted).total

    logger.info(
        "context_compacted",
        original_count=len(messages),
        final_count=len(compacted),
        tokens_saved=saved,
    )
    return CompactionResult(
        compacted=True,
        original_count=len(messages),
        final_count=len(compacted),
        tokens_saved=saved,
        messages=compacted,
        summary=summary,
    )


def format_note(note: StructuredNote) -> str:
    """Render a note as one markdown bullet: ``- {emoji} **{date}** [{category}]: {content}``."""
    emoji = NOTE_CATEGORY_EMOJI[note.category]
    return f"- {emoji} **{note.timestamp.date().isoformat()}** [{note.category}]: {note.content}"


def create_context_management_headers(
    context_management: bool = False,
    token_efficient: bool = False,
    extended_context: bool = False,
) -> dict[str, str]:
    """Build the ``anthropic-beta`` header for the enabled features; empty if none."""
    features = []
    if context_management:
        features.append(ANTHROPIC_BETA_HEADERS["context_management"])
    if token_efficient:
        features.append(ANTHROPIC_BETA_HEADERS["token_efficient"])
    if extended_context:
        features.append(ANTHROPIC_BETA_HEADERS["extended_context"])
    if not features:
        return {}
    return {ANTHROPIC_BETA_HEADER: ",".join(features)}
