"""Application settings loaded from environment variables.

Environment Configuration:
    VID0_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    VID0_INTERNAL_SECRET: Internal API secret (required in staging/prod)

Auth Configuration (required in all environments):
    CLERK_JWKS_URL: Full URL to the Clerk JWKS endpoint
    CLERK_ISSUER: Expected JWT issuer (trailing slash stripped)
    CLERK_AUTHORIZED_PARTIES: Optional comma-separated list of allowed `azp` values

Usage Configuration:
    USAGE_BACKEND: Where daily counters live (database | redis)
    REDIS_URL: Redis connection string (required when USAGE_BACKEND=redis)
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from vid0.constants import PROVIDERS


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class UsageBackendKind(str, Enum):
    """Storage for daily usage counters."""

    DATABASE = "database"
    REDIS = "redis"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - CLERK_JWKS_URL and CLERK_ISSUER are required in all environments
    - VID0_INTERNAL_SECRET is required in staging and prod only
    - REDIS_URL is required when USAGE_BACKEND=redis
    """

    vid0_env: Environment = Field(default=Environment.LOCAL, alias="VID0_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    vid0_internal_secret: str | None = Field(default=None, alias="VID0_INTERNAL_SECRET")

    # Clerk auth settings (required in all environments)
    clerk_jwks_url: str | None = Field(default=None, alias="CLERK_JWKS_URL")
    clerk_issuer: str | None = Field(default=None, alias="CLERK_ISSUER")
    clerk_authorized_parties: str | None = Field(default=None, alias="CLERK_AUTHORIZED_PARTIES")

    # Usage counters
    usage_backend: UsageBackendKind = Field(
        default=UsageBackendKind.DATABASE, alias="USAGE_BACKEND"
    )
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Attachment storage
    storage_url: str | None = Field(default=None, alias="STORAGE_URL")
    storage_service_key: str | None = Field(default=None, alias="STORAGE_SERVICE_KEY")
    storage_bucket: str = Field(default="chat-attachments", alias="STORAGE_BUCKET")
    signed_url_expiry_s: int = Field(default=300, alias="SIGNED_URL_EXPIRY_S")  # 5 minutes

    # Key encryption for BYOK API keys
    # Base64-encoded 32-byte key for XSalsa20-Poly1305 encryption
    vid0_key_encryption_key: str | None = Field(default=None, alias="VID0_KEY_ENCRYPTION_KEY")

    # Platform API keys for LLM providers (optional)
    # If set, that provider can serve users who have not added their own key
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    mistral_api_key: str | None = Field(default=None, alias="MISTRAL_API_KEY")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_GENERATIVE_AI_API_KEY")
    xai_api_key: str | None = Field(default=None, alias="XAI_API_KEY")
    perplexity_api_key: str | None = Field(default=None, alias="PERPLEXITY_API_KEY")
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")

    # Provider kill switches
    enable_openai: bool = Field(default=True, alias="ENABLE_OPENAI")
    enable_anthropic: bool = Field(default=True, alias="ENABLE_ANTHROPIC")
    enable_mistral: bool = Field(default=True, alias="ENABLE_MISTRAL")
    enable_google: bool = Field(default=True, alias="ENABLE_GOOGLE")
    enable_xai: bool = Field(default=True, alias="ENABLE_XAI")
    enable_perplexity: bool = Field(default=True, alias="ENABLE_PERPLEXITY")
    enable_openrouter: bool = Field(default=True, alias="ENABLE_OPENROUTER")

    # Chat completion
    chat_max_duration_s: int = Field(default=60, alias="CHAT_MAX_DURATION_S")
    context_compaction_enabled: bool = Field(default=True, alias="CONTEXT_COMPACTION_ENABLED")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for all environments."""
        missing_auth = []
        if not self.clerk_jwks_url:
            missing_auth.append("CLERK_JWKS_URL")
        if not self.clerk_issuer:
            missing_auth.append("CLERK_ISSUER")

        if missing_auth:
            raise ValueError(
                f"Missing required Clerk auth settings: {', '.join(missing_auth)}. "
                "Set these environment variables to the values of your Clerk instance."
            )

        if self.vid0_env in (Environment.STAGING, Environment.PROD):
            if not self.vid0_internal_secret:
                raise ValueError(
                    f"VID0_INTERNAL_SECRET is required for VID0_ENV={self.vid0_env.value}"
                )

        if self.usage_backend == UsageBackendKind.REDIS and not self.redis_url:
            raise ValueError("REDIS_URL is required when USAGE_BACKEND=redis")

        return self

    @property
    def requires_internal_header(self) -> bool:
        """Whether requests must include the internal secret header."""
        return self.vid0_env in (Environment.STAGING, Environment.PROD)

    @property
    def authorized_party_list(self) -> list[str]:
        """Parse comma-separated authorized parties into a list."""
        if self.clerk_authorized_parties:
            return [p.strip() for p in self.clerk_authorized_parties.split(",") if p.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.clerk_issuer:
            return self.clerk_issuer.rstrip("/")
        return None

    def platform_key_for(self, provider: str) -> str | None:
        """Return the platform API key configured for a provider, if any."""
        if provider not in PROVIDERS:
            return None
        return getattr(self, f"{provider}_api_key", None) or None

    def provider_enabled(self, provider: str) -> bool:
        """Whether the provider kill switch allows traffic."""
        return bool(getattr(self, f"enable_{provider}", False))


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
