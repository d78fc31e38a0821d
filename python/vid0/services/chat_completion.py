"""Chat completion: the /api/chat send path.

Two phases:

1. ``prepare_chat_completion`` (sync, before any byte is sent): validates
   the body, checks model access, resolves the provider key, consumes one
   message from the daily quota and stores the user message. Failures raise
   ApiError and reach the client as a normal error envelope.
2. ``stream_chat_completion`` (async generator): streams the provider reply
   as SSE and stores the assistant message. Sync DB work runs through
   run_in_threadpool with a session of its own.

SSE events:
- meta: chat_id, user_message_id, model, provider
- delta: {"delta": "text chunk"}
- done: assistant_message_id, usage
- error: code, message (replaces done)
"""

import asyncio
import json
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from vid0.config import Settings
from vid0.constants import MESSAGE_MAX_LENGTH, MODEL_DEFAULT, SYSTEM_PROMPT_DEFAULT
from vid0.db.models import Chat
from vid0.errors import ApiErrorCode, InvalidRequestError
from vid0.logging import get_logger
from vid0.schemas.chat import ChatCompletionRequest, ChatTurn
from vid0.services.api_key_resolver import ResolvedKey, resolve_api_key
from vid0.services.chats import get_owned_chat
from vid0.services.context_window import compact_context, create_context_management_headers
from vid0.services.llm import LLMError, LLMErrorClass, LLMRouter
from vid0.services.llm.types import LLMCallContext, LLMOperation, LLMRequest, LLMUsage, Turn
from vid0.services.messages import insert_message
from vid0.services.models import ModelCatalog, ModelConfig, check_model_access
from vid0.services.usage import UsageBackend, UsageIdentity, is_pro_model

logger = get_logger(__name__)

MISSING_INFORMATION = "Error, missing information"
LLM_ROLES = ("system", "user", "assistant")


def format_sse_event(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def content_text(content: Any) -> str:
    """Plain text of a message's content (string, or a list of text parts)."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type", "text") == "text"
        ]
        return "".join(texts)
    return json.dumps(content)


@dataclass
class PreparedCompletion:
    """Everything the streaming phase needs, resolved up front."""

    chat_id: UUID
    model: ModelConfig
    resolved_key: ResolvedKey
    turns: list[Turn]
    user_message_id: UUID | None = None
    persist: bool = False
    message_group_id: str | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)
    remaining: int = 0


def validate_completion_request(body: ChatCompletionRequest) -> ChatTurn:
    """Check the required fields and return the last turn.

    Raises:
        InvalidRequestError: Missing messages or chat id, or a message over
            MESSAGE_MAX_LENGTH characters.
    """
    if not body.messages or body.chat_id is None:
        raise InvalidRequestError(message=MISSING_INFORMATION)
    last = body.messages[-1]
    if len(content_text(last.content)) > MESSAGE_MAX_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_MESSAGE_TOO_LONG,
            f"Message exceeds maximum length of {MESSAGE_MAX_LENGTH} characters",
        )
    return last


def build_turns(
    body: ChatCompletionRequest,
    chat: Chat | None,
    settings: Settings,
) -> list[Turn]:
    """Conversation turns for the provider, system prompt first.

    The request's system prompt wins over the chat's; the default applies
    when neither is set. With compaction enabled, older turns are folded into
    a summary once the history is large.
    """
    history = [
        {"role": turn.role, "content": content_text(turn.content)}
        for turn in body.messages or []
        if turn.role in LLM_ROLES and turn.role != "system"
    ]
    if settings.context_compaction_enabled:
        history = compact_context(history).messages

    system_prompt = body.system_prompt or (chat.system_prompt if chat else None) or SYSTEM_PROMPT_DEFAULT
    return [Turn(role="system", content=system_prompt)] + [
        Turn(role=m["role"], content=m["content"]) for m in history
    ]


def prepare_chat_completion(
    db: Session,
    *,
    viewer_id: UUID | None,
    anonymous_id: str | None,
    body: ChatCompletionRequest,
    catalog: ModelCatalog,
    usage_backend: UsageBackend,
    settings: Settings,
) -> PreparedCompletion:
    """Validate, authorize and account for one send; store the user message.

    Signed-in callers must own the chat and their messages are stored.
    Anonymous callers are served without storage.

    Raises:
        ApiError: Validation, model access, quota or ownership failures.
        LLMError: No key available for the model's provider.
    """
    last = validate_completion_request(body)
    model_id = body.model or MODEL_DEFAULT
    model = check_model_access(db, catalog, viewer_id, model_id)

    chat = get_owned_chat(db, viewer_id, body.chat_id) if viewer_id is not None else None
    resolved_key = resolve_api_key(db, viewer_id, model.provider, settings)

    status = usage_backend.try_consume(
        db, UsageIdentity(user_id=viewer_id, anonymous_id=anonymous_id), is_pro_model(model_id)
    )
    status.raise_if_refused()

    turns = build_turns(body, chat, settings)

    extra_headers: dict[str, str] = {}
    if model.provider == "anthropic":
        extra_headers = create_context_management_headers(
            context_management=settings.context_compaction_enabled
        )

    user_message_id = None
    if chat is not None and last.role == "user":
        message = insert_message(
            db,
            chat,
            viewer_id,
            "user",
            content=content_text(last.content),
            attachments=last.attachments,
            message_group_id=body.message_group_id,
            model=model_id,
        )
        db.flush()
        user_message_id = message.id
        db.commit()

    logger.info(
        "chat_completion_prepared",
        chat_id=str(body.chat_id),
        model=model_id,
        provider=model.provider,
        key_mode=resolved_key.mode,
        turns=len(turns),
        remaining=status.remaining,
    )
    return PreparedCompletion(
        chat_id=body.chat_id,
        model=model,
        resolved_key=resolved_key,
        turns=turns,
        user_message_id=user_message_id,
        persist=chat is not None,
        message_group_id=body.message_group_id,
        extra_headers=extra_headers,
        remaining=status.remaining,
    )


def _store_assistant_message(
    db_factory: Callable[[], Session],
    chat_id: UUID,
    content: str,
    model_id: str,
    message_group_id: str | None,
) -> UUID | None:
    db = db_factory()
    try:
        chat = db.get(Chat, chat_id)
        if chat is None:
            # Deleted while the reply was streaming
            return None
        message = insert_message(
            db,
            chat,
            None,
            "assistant",
            content=content,
            message_group_id=message_group_id,
            model=model_id,
        )
        db.flush()
        message_id = message.id
        db.commit()
        return message_id
    finally:
        db.close()


def _usage_dict(usage: LLMUsage | None) -> dict | None:
    if usage is None:
        return None
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens,
    }


async def stream_chat_completion(
    prepared: PreparedCompletion,
    *,
    llm_router: LLMRouter,
    db_factory: Callable[[], Session],
    max_duration_s: int = 60,
    max_tokens: int | None = None,
) -> AsyncIterator[str]:
    """Stream the provider reply as SSE and store it once complete.

    The whole call, provider time included, is bounded by ``max_duration_s``.
    A partial reply is not stored when the stream fails.
    """
    model = prepared.model
    yield format_sse_event(
        "meta",
        {
            "chat_id": str(prepared.chat_id),
            "user_message_id": str(prepared.user_message_id) if prepared.user_message_id else None,
            "model": model.id,
            "provider": model.provider,
        },
    )

    request = LLMRequest(
        model_name=model.provider_model_id,
        messages=prepared.turns,
        max_tokens=max_tokens or model.max_output_tokens,
        extra_headers=prepared.extra_headers,
    )
    call_context = LLMCallContext(
        operation=LLMOperation.CHAT_SEND, chat_id=str(prepared.chat_id), model_id=model.id
    )

    full_content = ""
    usage: LLMUsage | None = None
    error: LLMError | None = None
    start = time.monotonic()

    try:
        async with asyncio.timeout(max_duration_s):
            async for chunk in llm_router.generate_stream(
                model.provider,
                request,
                prepared.resolved_key.api_key,
                timeout_s=max_duration_s,
                key_mode=prepared.resolved_key.mode,
                call_context=call_context,
            ):
                if chunk.done:
                    usage = chunk.usage
                    break
                if chunk.delta_text:
                    full_content += chunk.delta_text
                    yield format_sse_event("delta", {"delta": chunk.delta_text})
    except TimeoutError:
        error = LLMError(LLMErrorClass.TIMEOUT, "Chat completion timed out", provider=model.provider)
    except LLMError as e:
        error = e

    latency_ms = int((time.monotonic() - start) * 1000)
    if error is not None:
        logger.warning(
            "chat_completion_failed",
            chat_id=str(prepared.chat_id),
            provider=model.provider,
            error_class=error.error_class.value,
            latency_ms=latency_ms,
        )
        api_error = error.to_api_error()
        yield format_sse_event("error", {"code": api_error.code.value, "message": api_error.message})
        return

    assistant_message_id = None
    if prepared.persist:
        assistant_message_id = await run_in_threadpool(
            _store_assistant_message,
            db_factory,
            prepared.chat_id,
            full_content,
            model.id,
            prepared.message_group_id,
        )

    logger.info(
        "chat_completion_finished",
        chat_id=str(prepared.chat_id),
        provider=model.provider,
        chars_generated=len(full_content),
        latency_ms=latency_ms,
    )
    yield format_sse_event(
        "done",
        {
            "assistant_message_id": str(assistant_message_id) if assistant_message_id else None,
            "usage": _usage_dict(usage),
        },
    )
