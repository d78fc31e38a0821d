"""Unit tests for token verifiers.

Tests the ClerkJwksVerifier (with a mocked JWKS client) and MockJwtVerifier.
"""

import time
from unittest.mock import MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import PyJWKClientError

from tests.helpers import mint_expired_token, mint_test_token, mint_token_with_bad_signature
from tests.support.test_verifier import MockJwtVerifier
from vid0.auth.verifier import ClerkJwksVerifier, validate_claims
from vid0.errors import ApiError, ApiErrorCode

ISSUER = "https://clerk.vid0.test"


class TestClerkJwksVerifier:
    """All tests mock the JWKS client; no HTTP is performed."""

    @pytest.fixture
    def rsa_keypair(self):
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return private_key, private_key.public_key()

    @pytest.fixture
    def verifier(self):
        return ClerkJwksVerifier(
            jwks_url=f"{ISSUER}/.well-known/jwks.json",
            issuer=f"{ISSUER}/",
            authorized_parties=["https://app.vid0.test"],
        )

    def mint_token(self, private_key, sub: str = "user_abc", **overrides) -> str:
        now = int(time.time())
        payload = {
            "sub": sub,
            "iss": ISSUER,
            "azp": "https://app.vid0.test",
            "iat": now,
            "exp": now + 3600,
            **overrides,
        }
        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return jwt.encode(payload, private_bytes, algorithm="RS256", headers={"kid": "test-key-id"})

    def with_signing_key(self, verifier, public_key):
        mock_jwk_client = MagicMock()
        mock_signing_key = MagicMock()
        mock_signing_key.key = public_key
        mock_jwk_client.get_signing_key_from_jwt.return_value = mock_signing_key
        return patch.object(verifier, "_get_jwks_client", return_value=mock_jwk_client)

    def test_issuer_trailing_slash_is_normalized(self, verifier):
        assert verifier.issuer == ISSUER

    def test_valid_token(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key)

        with self.with_signing_key(verifier, public_key):
            claims = verifier.verify(token)

        assert claims["sub"] == "user_abc"
        assert claims["iss"] == ISSUER

    def test_invalid_signature(self, verifier, rsa_keypair):
        wrong_private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        token = self.mint_token(wrong_private_key)

        with self.with_signing_key(verifier, rsa_keypair[1]):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED

    def test_expired_token(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        # Expired 2 minutes ago, beyond the clock skew allowance
        token = self.mint_token(private_key, exp=int(time.time()) - 120)

        with self.with_signing_key(verifier, public_key):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert "expired" in exc_info.value.message.lower()

    def test_expiry_within_clock_skew_is_accepted(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key, exp=int(time.time()) - 30)

        with self.with_signing_key(verifier, public_key):
            assert verifier.verify(token)["sub"] == "user_abc"

    def test_wrong_issuer(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key, iss="https://other.clerk.test")

        with self.with_signing_key(verifier, public_key):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert "issuer" in exc_info.value.message.lower()

    def test_unauthorized_party(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key, azp="https://evil.test")

        with self.with_signing_key(verifier, public_key):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert exc_info.value.message == "Invalid token: unauthorized party"

    def test_audience_is_not_checked(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key, aud="anything")

        with self.with_signing_key(verifier, public_key):
            assert verifier.verify(token)["aud"] == "anything"

    def test_missing_sub(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key, sub="")

        with self.with_signing_key(verifier, public_key):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED

    def test_malformed_token(self, verifier):
        with pytest.raises(ApiError) as exc_info:
            verifier.verify("not-a-jwt")
        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED

    def test_jwks_unreachable(self, verifier, rsa_keypair):
        token = self.mint_token(rsa_keypair[0])
        mock_jwk_client = MagicMock()
        mock_jwk_client.get_signing_key_from_jwt.side_effect = PyJWKClientError(
            "Fail to fetch data from the url"
        )

        with patch.object(verifier, "_get_jwks_client", return_value=mock_jwk_client):
            with pytest.raises(ApiError) as exc_info:
                verifier.verify(token)

        assert exc_info.value.code == ApiErrorCode.E_AUTH_UNAVAILABLE

    def test_kid_miss_refreshes_once(self, verifier, rsa_keypair):
        private_key, public_key = rsa_keypair
        token = self.mint_token(private_key)

        stale_client = MagicMock()
        stale_client.get_signing_key_from_jwt.side_effect = PyJWKClientError(
            'Unable to find a signing key that matches: "test-key-id"'
        )
        fresh_client = MagicMock()
        fresh_key = MagicMock()
        fresh_key.key = public_key
        fresh_client.get_signing_key_from_jwt.return_value = fresh_key

        with (
            patch.object(verifier, "_get_jwks_client", side_effect=[stale_client, fresh_client]),
            patch.object(verifier, "_refresh_jwks") as refresh,
        ):
            claims = verifier.verify(token)

        refresh.assert_called_once()
        assert claims["sub"] == "user_abc"


class TestValidateClaims:
    def test_no_authorized_parties_skips_azp(self):
        assert validate_claims({"sub": "user_1"}, [])["sub"] == "user_1"

    def test_blank_sub(self):
        with pytest.raises(ApiError):
            validate_claims({"sub": "   "}, [])


class TestMockJwtVerifier:
    def test_round_trip(self):
        claims = MockJwtVerifier().verify(mint_test_token("user_abc"))
        assert claims["sub"] == "user_abc"

    def test_expired(self):
        with pytest.raises(ApiError, match="expired"):
            MockJwtVerifier().verify(mint_expired_token("user_abc"))

    def test_bad_signature(self):
        with pytest.raises(ApiError) as exc_info:
            MockJwtVerifier().verify(mint_token_with_bad_signature("user_abc"))
        assert exc_info.value.message == "Invalid token signature"

    def test_wrong_issuer(self):
        with pytest.raises(ApiError):
            MockJwtVerifier().verify(mint_test_token("user_abc", issuer="someone-else"))
