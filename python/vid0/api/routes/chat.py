"""Chat completion route.

POST /api/chat streams the assistant reply as Server-Sent Events. Signed-in
and anonymous callers are both served; anonymous callers identify with the
X-Anonymous-Id header and are limited to the anonymous quota and models.

Validation, model access, key resolution and quota consumption happen before
the stream starts, so those failures return a normal error envelope.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from vid0.api.deps import (
    get_app_settings,
    get_db,
    get_llm_router,
    get_model_catalog,
    get_session_factory,
    get_usage_backend,
)
from vid0.auth.middleware import Viewer, get_anonymous_id, get_optional_viewer
from vid0.config import Settings
from vid0.schemas.chat import ChatCompletionRequest
from vid0.services import chat_completion
from vid0.services.llm import LLMRouter
from vid0.services.models import ModelCatalog
from vid0.services.usage import UsageBackend

router = APIRouter(tags=["chat"])


@router.post("/api/chat")
def send_chat(
    body: ChatCompletionRequest,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    anonymous_id: Annotated[str | None, Depends(get_anonymous_id)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    catalog: Annotated[ModelCatalog, Depends(get_model_catalog)],
    usage_backend: Annotated[UsageBackend, Depends(get_usage_backend)],
    llm_router: Annotated[LLMRouter, Depends(get_llm_router)],
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
) -> StreamingResponse:
    """Send the conversation and stream the reply.

    Errors (before streaming):
        E_INVALID_REQUEST (400): Missing messages or chatId.
        E_MESSAGE_TOO_LONG (400): Last message over 10 000 characters.
        E_MODEL_REQUIRES_AUTH / E_MODEL_REQUIRES_KEY (403)
        E_DAILY_LIMIT_REACHED (429)
        E_LLM_INVALID_KEY (400): No key for the model's provider.
    """
    prepared = chat_completion.prepare_chat_completion(
        db,
        viewer_id=viewer.user_id if viewer else None,
        anonymous_id=anonymous_id,
        body=body,
        catalog=catalog,
        usage_backend=usage_backend,
        settings=settings,
    )
    return StreamingResponse(
        chat_completion.stream_chat_completion(
            prepared,
            llm_router=llm_router,
            db_factory=session_factory,
            max_duration_s=settings.chat_max_duration_s,
        ),
        media_type="text/event-stream; charset=utf-8",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
        },
    )
