"""Tests for BYOK key storage, encryption and key resolution.

Tests cover:
- SecretBox round trip, fingerprints, tamper detection, master key validation
- Upsert semantics (one key per user and provider)
- Format validation
- No secret material in API responses
- Resolution order: user key, then platform key, else E_LLM_INVALID_KEY
"""

import base64

import pytest

from vid0.config import Settings
from vid0.db.models import User, UserApiKey
from vid0.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from vid0.services import user_keys as user_keys_service
from vid0.services.api_key_resolver import has_api_key, resolve_api_key
from vid0.services.crypto import (
    MASTER_KEY_ENV,
    CryptoError,
    clear_master_key_cache,
    compute_key_fingerprint,
    decrypt_api_key,
    encrypt_api_key,
)
from vid0.services.llm import LLMError, LLMErrorClass

OPENAI_KEY = "sk-test-abcdefghijklmnop1234"

NO_PLATFORM_KEYS = {
    "OPENAI_API_KEY": None,
    "ANTHROPIC_API_KEY": None,
    "MISTRAL_API_KEY": None,
    "GOOGLE_GENERATIVE_AI_API_KEY": None,
    "XAI_API_KEY": None,
    "PERPLEXITY_API_KEY": None,
    "OPENROUTER_API_KEY": None,
}


def make_settings(**overrides) -> Settings:
    values = {"DATABASE_URL": "sqlite://", **NO_PLATFORM_KEYS, **overrides}
    return Settings(**values)


@pytest.fixture
def user(db_session) -> User:
    user = User(subject="user_keys_owner")
    db_session.add(user)
    db_session.commit()
    return user


# =============================================================================
# Crypto
# =============================================================================


class TestCrypto:
    def test_round_trip(self):
        ciphertext, nonce, version, fingerprint = encrypt_api_key(OPENAI_KEY)
        assert OPENAI_KEY.encode() not in ciphertext
        assert len(nonce) == 24
        assert version == 1
        assert fingerprint == "1234"
        assert decrypt_api_key(ciphertext, nonce, version) == OPENAI_KEY

    def test_nonce_differs_per_encryption(self):
        _, first, _, _ = encrypt_api_key(OPENAI_KEY)
        _, second, _, _ = encrypt_api_key(OPENAI_KEY)
        assert first != second

    def test_tampered_ciphertext_fails(self):
        ciphertext, nonce, version, _ = encrypt_api_key(OPENAI_KEY)
        tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
        with pytest.raises(CryptoError):
            decrypt_api_key(tampered, nonce, version)

    def test_unknown_version_fails(self):
        ciphertext, nonce, _, _ = encrypt_api_key(OPENAI_KEY)
        with pytest.raises(CryptoError):
            decrypt_api_key(ciphertext, nonce, 99)

    def test_short_fingerprint(self):
        assert compute_key_fingerprint("abc") == "abc"

    def test_missing_master_key(self, monkeypatch):
        monkeypatch.delenv(MASTER_KEY_ENV)
        clear_master_key_cache()
        with pytest.raises(CryptoError, match="not set"):
            encrypt_api_key(OPENAI_KEY)

    def test_wrong_master_key_length(self, monkeypatch):
        monkeypatch.setenv(MASTER_KEY_ENV, base64.b64encode(b"short").decode())
        clear_master_key_cache()
        with pytest.raises(CryptoError, match="32 bytes"):
            encrypt_api_key(OPENAI_KEY)


# =============================================================================
# Key storage
# =============================================================================


class TestUserKeyService:
    def test_save_new_then_replace(self, db_session, user):
        first = user_keys_service.save_user_key(db_session, user.id, "openai", OPENAI_KEY)
        assert first.is_new_key is True
        assert first.key.key_fingerprint == "1234"

        second = user_keys_service.save_user_key(
            db_session, user.id, "OpenAI", "sk-replacement-key-9999"
        )
        assert second.is_new_key is False
        assert second.key.id == first.key.id
        assert second.key.key_fingerprint == "9999"
        assert db_session.query(UserApiKey).filter_by(user_id=user.id).count() == 1

    def test_stored_key_is_encrypted(self, db_session, user):
        user_keys_service.save_user_key(db_session, user.id, "openai", OPENAI_KEY)
        row = db_session.query(UserApiKey).filter_by(user_id=user.id).one()
        assert OPENAI_KEY.encode() not in row.encrypted_key
        assert decrypt_api_key(row.encrypted_key, row.key_nonce, row.master_key_version) == OPENAI_KEY

    def test_missing_fields(self, db_session, user):
        with pytest.raises(InvalidRequestError):
            user_keys_service.save_user_key(db_session, user.id, "openai", None)

    def test_unknown_provider(self, db_session, user):
        with pytest.raises(ApiError) as exc_info:
            user_keys_service.save_user_key(db_session, user.id, "acme", OPENAI_KEY)
        assert exc_info.value.code == ApiErrorCode.E_KEY_PROVIDER_INVALID

    @pytest.mark.parametrize(
        "api_key,message",
        [("short", "API key too short"), ("sk-has space-inside", "API key contains whitespace")],
    )
    def test_invalid_format(self, db_session, user, api_key, message):
        with pytest.raises(ApiError) as exc_info:
            user_keys_service.save_user_key(db_session, user.id, "openai", api_key)
        assert exc_info.value.code == ApiErrorCode.E_KEY_INVALID_FORMAT
        assert exc_info.value.message == message

    def test_delete(self, db_session, user):
        user_keys_service.save_user_key(db_session, user.id, "openai", OPENAI_KEY)
        user_keys_service.delete_user_key(db_session, user.id, "openai")
        assert user_keys_service.list_user_keys(db_session, user.id) == []

    def test_delete_missing(self, db_session, user):
        with pytest.raises(NotFoundError) as exc_info:
            user_keys_service.delete_user_key(db_session, user.id, "openai")
        assert exc_info.value.code == ApiErrorCode.E_KEY_NOT_FOUND

    def test_key_status(self, db_session, user):
        user_keys_service.save_user_key(db_session, user.id, "mistral", OPENAI_KEY)
        settings = make_settings(OPENAI_API_KEY="sk-platform")

        statuses = {
            s.provider: s
            for s in user_keys_service.get_provider_key_status(db_session, user.id, settings)
        }
        assert statuses["mistral"].has_user_key is True
        assert statuses["mistral"].has_env_key is False
        assert statuses["openai"].has_user_key is False
        assert statuses["openai"].has_env_key is True


# =============================================================================
# Key resolution
# =============================================================================


class TestResolveApiKey:
    def test_user_key_wins(self, db_session, user):
        user_keys_service.save_user_key(db_session, user.id, "openai", OPENAI_KEY)
        resolved = resolve_api_key(
            db_session, user.id, "openai", make_settings(OPENAI_API_KEY="sk-platform")
        )
        assert resolved.mode == "byok"
        assert resolved.api_key == OPENAI_KEY
        assert resolved.user_key_id is not None

    def test_platform_fallback(self, db_session, user):
        resolved = resolve_api_key(
            db_session, user.id, "openai", make_settings(OPENAI_API_KEY="sk-platform")
        )
        assert resolved.mode == "platform"
        assert resolved.api_key == "sk-platform"

    def test_anonymous_uses_platform_key(self, db_session):
        resolved = resolve_api_key(
            db_session, None, "openai", make_settings(OPENAI_API_KEY="sk-platform")
        )
        assert resolved.mode == "platform"

    def test_no_key_anywhere(self, db_session, user):
        with pytest.raises(LLMError) as exc_info:
            resolve_api_key(db_session, user.id, "anthropic", make_settings())
        assert exc_info.value.error_class == LLMErrorClass.INVALID_KEY
        assert exc_info.value.to_api_error().code == ApiErrorCode.E_LLM_INVALID_KEY

    def test_has_api_key(self, db_session, user):
        settings = make_settings()
        assert has_api_key(db_session, user.id, "openai", settings) is False
        user_keys_service.save_user_key(db_session, user.id, "openai", OPENAI_KEY)
        assert has_api_key(db_session, user.id, "openai", settings) is True
        assert has_api_key(db_session, None, "openai", settings) is False


# =============================================================================
# Routes
# =============================================================================


class TestKeyRoutes:
    def test_save_returns_201_then_200(self, authenticated_client, make_user):
        _, headers = make_user()
        first = authenticated_client.post(
            "/api/user-keys", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers
        )
        assert first.status_code == 201
        assert first.json()["data"]["is_new_key"] is True

        second = authenticated_client.post(
            "/api/user-keys", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers
        )
        assert second.status_code == 200
        assert second.json()["data"]["is_new_key"] is False

    def test_list_has_no_secret_fields(self, authenticated_client, make_user):
        _, headers = make_user()
        authenticated_client.post(
            "/api/user-keys", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers
        )

        response = authenticated_client.get("/api/user-keys", headers=headers)
        assert response.status_code == 200
        key = response.json()["data"][0]
        assert key["key_fingerprint"] == "1234"
        for secret_field in ("encrypted_key", "key_nonce", "master_key_version"):
            assert secret_field not in key
        assert OPENAI_KEY not in response.text

    def test_invalid_format_is_400(self, authenticated_client, make_user):
        _, headers = make_user()
        response = authenticated_client.post(
            "/api/user-keys", json={"provider": "openai", "apiKey": "short"}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_KEY_INVALID_FORMAT"

    def test_delete(self, authenticated_client, make_user):
        _, headers = make_user()
        authenticated_client.post(
            "/api/user-keys", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers
        )

        response = authenticated_client.request(
            "DELETE", "/api/user-keys", json={"provider": "openai"}, headers=headers
        )
        assert response.status_code == 204

        again = authenticated_client.request(
            "DELETE", "/api/user-keys", json={"provider": "openai"}, headers=headers
        )
        assert again.status_code == 404

    def test_key_status(self, authenticated_client, make_user):
        _, headers = make_user()
        response = authenticated_client.get("/api/user-key-status", headers=headers)
        assert response.status_code == 200
        providers = {s["provider"] for s in response.json()["data"]}
        assert {"openai", "anthropic", "google"} <= providers

    def test_providers_is_public(self, authenticated_client):
        response = authenticated_client.get("/api/providers")
        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["data"]]
        assert "openai" in ids
