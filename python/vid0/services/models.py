"""Model catalog.

A static list of model configs, filtered by the provider enable flags and
cached in memory. The cache is an object on ``app.state``; ``refresh``
rebuilds it (e.g. after an enable flag changed).

Model ids are either a provider-native id ("gpt-4.1-nano") or
``"<provider>:<provider model id>"`` for routed providers such as
OpenRouter ("openrouter:deepseek/deepseek-r1:free").
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from vid0.constants import FREE_MODELS_IDS, NON_AUTH_ALLOWED_MODELS
from vid0.errors import ApiError, ApiErrorCode, NotFoundError
from vid0.logging import get_logger
from vid0.schemas.keys import ModelOut, ModelsRefreshOut
from vid0.services.user_keys import get_user_key_providers

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    provider: str
    context_window: int
    max_output_tokens: int = 4096

    @property
    def provider_model_id(self) -> str:
        """Id sent to the provider API."""
        prefix = f"{self.provider}:"
        return self.id[len(prefix) :] if self.id.startswith(prefix) else self.id


MODEL_CONFIGS: tuple[ModelConfig, ...] = (
    ModelConfig("gpt-4.1-nano", "GPT-4.1 Nano", "openai", 1_047_576),
    ModelConfig("gpt-4.1-mini", "GPT-4.1 Mini", "openai", 1_047_576),
    ModelConfig("gpt-4.1", "GPT-4.1", "openai", 1_047_576, 8192),
    ModelConfig("gpt-4o", "GPT-4o", "openai", 128_000),
    ModelConfig("o4-mini", "o4-mini", "openai", 200_000, 8192),
    ModelConfig("claude-haiku-4-5-20251001", "Claude Haiku 4.5", "anthropic", 200_000, 8192),
    ModelConfig("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5", "anthropic", 200_000, 8192),
    ModelConfig("claude-opus-4-1-20250805", "Claude Opus 4.1", "anthropic", 200_000, 8192),
    ModelConfig("gemini-2.5-flash", "Gemini 2.5 Flash", "google", 1_048_576, 8192),
    ModelConfig("gemini-2.5-pro", "Gemini 2.5 Pro", "google", 1_048_576, 8192),
    ModelConfig("mistral-large-latest", "Mistral Large", "mistral", 128_000),
    ModelConfig("pixtral-large-latest", "Pixtral Large", "mistral", 128_000),
    ModelConfig("grok-3", "Grok 3", "xai", 131_072),
    ModelConfig("grok-3-mini", "Grok 3 Mini", "xai", 131_072),
    ModelConfig("sonar", "Sonar", "perplexity", 127_072),
    ModelConfig("sonar-pro", "Sonar Pro", "perplexity", 200_000, 8192),
    ModelConfig(
        "openrouter:deepseek/deepseek-r1:free", "DeepSeek R1 (free)", "openrouter", 163_840
    ),
    ModelConfig(
        "openrouter:meta-llama/llama-3.3-8b-instruct:free",
        "Llama 3.3 8B Instruct (free)",
        "openrouter",
        128_000,
    ),
)


class ModelCatalog:
    """In-memory cache of the models whose provider is enabled.

    Args:
        is_provider_enabled: Provider name -> enabled. Defaults to all enabled.
        configs: Model configs to serve.
    """

    def __init__(
        self,
        is_provider_enabled: Callable[[str], bool] | None = None,
        configs: tuple[ModelConfig, ...] = MODEL_CONFIGS,
    ):
        self._is_provider_enabled = is_provider_enabled or (lambda _provider: True)
        self._configs = configs
        self._lock = threading.Lock()
        self._models: list[ModelConfig] | None = None
        self.refreshed_at: datetime | None = None

    def all_models(self) -> list[ModelConfig]:
        with self._lock:
            if self._models is None:
                self._load()
            return list(self._models or [])

    def refresh(self) -> list[ModelConfig]:
        with self._lock:
            self._load()
            return list(self._models or [])

    def get(self, model_id: str) -> ModelConfig | None:
        return next((m for m in self.all_models() if m.id == model_id), None)

    def _load(self) -> None:
        self._models = [m for m in self._configs if self._is_provider_enabled(m.provider)]
        self.refreshed_at = datetime.now(UTC)
        logger.info("model_catalog_loaded", count=len(self._models))


def provider_for_model(catalog: ModelCatalog, model_id: str) -> str:
    """Provider of a catalog model.

    Raises:
        NotFoundError: E_MODEL_NOT_FOUND if the model is not served.
    """
    return get_model_or_404(catalog, model_id).provider


def get_model_or_404(catalog: ModelCatalog, model_id: str) -> ModelConfig:
    config = catalog.get(model_id)
    if config is None:
        raise NotFoundError(ApiErrorCode.E_MODEL_NOT_FOUND, f"Model {model_id} not found")
    return config


def model_to_out(config: ModelConfig, *, authenticated: bool, user_providers: set[str]) -> ModelOut:
    free = config.id in FREE_MODELS_IDS
    requires_auth = config.id not in NON_AUTH_ALLOWED_MODELS
    if authenticated:
        accessible = free or config.provider in user_providers
    else:
        accessible = not requires_auth
    return ModelOut(
        id=config.id,
        name=config.name,
        provider=config.provider,
        context_window=config.context_window,
        free=free,
        pro=not free,
        requires_auth=requires_auth,
        accessible=accessible,
    )


def list_models(catalog: ModelCatalog, db: Session, viewer_id: UUID | None) -> list[ModelOut]:
    """All served models with access flags for the caller."""
    user_providers = get_user_key_providers(db, viewer_id) if viewer_id is not None else set()
    return [
        model_to_out(m, authenticated=viewer_id is not None, user_providers=user_providers)
        for m in catalog.all_models()
    ]


def refresh_models(catalog: ModelCatalog) -> ModelsRefreshOut:
    models = catalog.refresh()
    outs = [model_to_out(m, authenticated=True, user_providers=set()) for m in models]
    return ModelsRefreshOut(
        message="Models cache refreshed",
        models=outs,
        timestamp=catalog.refreshed_at or datetime.now(UTC),
        count=len(outs),
    )


def check_model_access(
    db: Session, catalog: ModelCatalog, viewer_id: UUID | None, model_id: str
) -> ModelConfig:
    """Check the caller may use a model.

    Anonymous callers are limited to NON_AUTH_ALLOWED_MODELS. Signed-in
    callers need their own key for the provider unless the model is free.

    Raises:
        ApiError: E_MODEL_REQUIRES_AUTH or E_MODEL_REQUIRES_KEY.
        NotFoundError: E_MODEL_NOT_FOUND.
    """
    if viewer_id is None:
        if model_id not in NON_AUTH_ALLOWED_MODELS:
            raise ApiError(
                ApiErrorCode.E_MODEL_REQUIRES_AUTH,
                "This model requires authentication. Please sign in to access more models.",
            )
        return get_model_or_404(catalog, model_id)

    config = get_model_or_404(catalog, model_id)
    if model_id not in FREE_MODELS_IDS and config.provider not in get_user_key_providers(
        db, viewer_id
    ):
        raise ApiError(
            ApiErrorCode.E_MODEL_REQUIRES_KEY,
            f"This model requires an API key for {config.provider}. "
            "Please add your API key in settings or use a free model.",
        )
    return config
