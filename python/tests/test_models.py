"""Tests for the model catalog and its routes.

A model is accessible to:
- anonymous callers iff it is in NON_AUTH_ALLOWED_MODELS
- signed-in callers iff it is free, or they stored a key for its provider

Disabled providers drop out of the catalog entirely.
"""

import pytest

from vid0.constants import FREE_MODELS_IDS, NON_AUTH_ALLOWED_MODELS
from vid0.db.models import User
from vid0.errors import ApiError, ApiErrorCode, NotFoundError
from vid0.services import user_keys as user_keys_service
from vid0.services.models import (
    MODEL_CONFIGS,
    ModelCatalog,
    ModelConfig,
    check_model_access,
    list_models,
    provider_for_model,
    refresh_models,
)

PAID_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"


@pytest.fixture
def catalog() -> ModelCatalog:
    return ModelCatalog()


@pytest.fixture
def user(db_session) -> User:
    user = User(subject="user_models")
    db_session.add(user)
    db_session.commit()
    return user


# =============================================================================
# Catalog
# =============================================================================


class TestModelCatalog:
    def test_serves_all_models_by_default(self, catalog):
        assert len(catalog.all_models()) == len(MODEL_CONFIGS)
        assert catalog.refreshed_at is not None

    def test_disabled_provider_is_dropped(self):
        catalog = ModelCatalog(lambda provider: provider != "anthropic")
        providers = {m.provider for m in catalog.all_models()}
        assert "anthropic" not in providers
        assert catalog.get(PAID_ANTHROPIC_MODEL) is None

    def test_refresh_picks_up_flag_change(self):
        enabled = {"openai": True}
        catalog = ModelCatalog(lambda provider: enabled.get(provider, False))
        assert {m.provider for m in catalog.all_models()} == {"openai"}

        enabled["mistral"] = True
        # Cached until refreshed
        assert {m.provider for m in catalog.all_models()} == {"openai"}
        assert {m.provider for m in catalog.refresh()} == {"openai", "mistral"}

    def test_routed_model_id(self):
        config = ModelConfig("openrouter:deepseek/deepseek-r1:free", "R1", "openrouter", 1000)
        assert config.provider_model_id == "deepseek/deepseek-r1:free"
        assert ModelConfig("gpt-4o", "GPT-4o", "openai", 1000).provider_model_id == "gpt-4o"

    def test_provider_for_model(self, catalog):
        assert provider_for_model(catalog, "gemini-2.5-flash") == "google"
        with pytest.raises(NotFoundError) as exc_info:
            provider_for_model(catalog, "no-such-model")
        assert exc_info.value.code == ApiErrorCode.E_MODEL_NOT_FOUND


# =============================================================================
# Access flags
# =============================================================================


class TestListModels:
    def test_anonymous_flags(self, catalog, db_session):
        models = {m.id: m for m in list_models(catalog, db_session, None)}

        for model_id, model in models.items():
            assert model.accessible is (model_id in NON_AUTH_ALLOWED_MODELS)
            assert model.requires_auth is (model_id not in NON_AUTH_ALLOWED_MODELS)

    def test_signed_in_without_keys_gets_free_models(self, catalog, db_session, user):
        models = {m.id: m for m in list_models(catalog, db_session, user.id)}

        for model_id in FREE_MODELS_IDS:
            assert models[model_id].accessible is True
            assert models[model_id].free is True
            assert models[model_id].pro is False
        assert models[PAID_ANTHROPIC_MODEL].accessible is False
        assert models[PAID_ANTHROPIC_MODEL].pro is True

    def test_user_key_unlocks_provider(self, catalog, db_session, user):
        user_keys_service.save_user_key(
            db_session, user.id, "anthropic", "sk-ant-test-key-abcdefgh"
        )
        models = {m.id: m for m in list_models(catalog, db_session, user.id)}

        assert models[PAID_ANTHROPIC_MODEL].accessible is True
        assert models["gpt-4o"].accessible is False

    def test_refresh_models(self, catalog):
        result = refresh_models(catalog)
        assert result.message == "Models cache refreshed"
        assert result.count == len(result.models) == len(MODEL_CONFIGS)


class TestCheckModelAccess:
    def test_anonymous_allowed_model(self, catalog, db_session):
        config = check_model_access(db_session, catalog, None, "gpt-4.1-nano")
        assert config.provider == "openai"

    def test_anonymous_needs_auth_for_other_models(self, catalog, db_session):
        with pytest.raises(ApiError) as exc_info:
            check_model_access(db_session, catalog, None, "mistral-large-latest")
        assert exc_info.value.code == ApiErrorCode.E_MODEL_REQUIRES_AUTH
        assert exc_info.value.status_code == 403

    def test_free_model_needs_no_key(self, catalog, db_session, user):
        config = check_model_access(db_session, catalog, user.id, "mistral-large-latest")
        assert config.provider == "mistral"

    def test_paid_model_needs_key(self, catalog, db_session, user):
        with pytest.raises(ApiError) as exc_info:
            check_model_access(db_session, catalog, user.id, PAID_ANTHROPIC_MODEL)
        assert exc_info.value.code == ApiErrorCode.E_MODEL_REQUIRES_KEY
        assert "anthropic" in exc_info.value.message

    def test_paid_model_with_key(self, catalog, db_session, user):
        user_keys_service.save_user_key(
            db_session, user.id, "anthropic", "sk-ant-test-key-abcdefgh"
        )
        assert check_model_access(db_session, catalog, user.id, PAID_ANTHROPIC_MODEL)

    def test_unknown_model(self, catalog, db_session, user):
        with pytest.raises(NotFoundError):
            check_model_access(db_session, catalog, user.id, "no-such-model")


# =============================================================================
# Routes
# =============================================================================


class TestModelRoutes:
    def test_list_anonymous(self, authenticated_client):
        response = authenticated_client.get("/api/models")

        assert response.status_code == 200
        models = response.json()["data"]["models"]
        accessible = [m["id"] for m in models if m["accessible"]]
        assert accessible == list(NON_AUTH_ALLOWED_MODELS)

    def test_list_signed_in(self, authenticated_client, make_user):
        _, headers = make_user()
        response = authenticated_client.get("/api/models", headers=headers)

        models = {m["id"]: m for m in response.json()["data"]["models"]}
        assert models["mistral-large-latest"]["accessible"] is True
        assert models[PAID_ANTHROPIC_MODEL]["accessible"] is False

    def test_refresh_requires_auth(self, authenticated_client):
        response = authenticated_client.post("/api/models")
        assert response.status_code == 401

    def test_refresh(self, authenticated_client, make_user):
        _, headers = make_user()
        response = authenticated_client.post("/api/models", headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["message"] == "Models cache refreshed"
        assert data["count"] == len(data["models"])
