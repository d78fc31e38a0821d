"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
- Subject and SSE helpers
"""

import json
import time
from uuid import uuid4

import jwt

from tests.support.test_verifier import MockJwtVerifier

# Default test token settings
DEFAULT_ISSUER = "test-issuer"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    subject: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    **extra_claims,
) -> str:
    """Mint a valid test JWT token for a Clerk-style subject."""
    now = int(time.time())
    payload = {
        "sub": subject,
        "iss": issuer,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, MockJwtVerifier.get_private_key(), algorithm="RS256")


def mint_expired_token(subject: str, issuer: str = DEFAULT_ISSUER) -> str:
    """Mint a token that expired 1 hour ago."""
    return mint_test_token(subject, expires_in=-3600, issuer=issuer)


def mint_token_with_bad_signature(subject: str, issuer: str = DEFAULT_ISSUER) -> str:
    """Mint a token signed with a different key (bad signature)."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_key_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    now = int(time.time())
    payload = {"sub": subject, "iss": issuer, "iat": now, "exp": now + DEFAULT_EXPIRES_IN}
    return jwt.encode(payload, private_key_bytes, algorithm="RS256")


def auth_headers(subject: str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given subject."""
    token = mint_test_token(subject, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def create_test_subject() -> str:
    """Random Clerk-style user id."""
    return f"user_{uuid4().hex[:24]}"


def parse_sse_events(body: str) -> list[tuple[str, dict]]:
    """Split an SSE body into (event, data) pairs."""
    events = []
    for block in body.strip().split("\n\n"):
        event = None
        data = None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: ") :]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: ") :])
        if event is not None:
            events.append((event, data))
    return events
