"""Log guards for provider calls.

Never logged: API keys, bearer tokens, prompts, message content. Lengths
and hashes of such values are fine when the key carries a ``_chars``,
``_length``, ``_sha256`` or ``_hash`` suffix.
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "api_key",
        "bearer",
        "token",
        "secret",
        "password",
        "message_text",
        "system_prompt",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest, for correlating logs without the text itself."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def redact_text(value: str, keep: int = 0) -> str:
    """Mask a string, optionally keeping ``keep`` leading characters."""
    if not value or keep <= 0 or keep >= len(value):
        return "***"
    return value[:keep] + "***"


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Return ``kwargs`` after checking no forbidden key is present.

    Raises:
        ValueError: In local/test when a forbidden key is used. Staging and
            prod log a warning instead.
    """
    violations = [
        key
        for key in kwargs
        if key in FORBIDDEN_KEYS and not key.endswith(REDACTED_SUFFIXES)
    ]
    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("VID0_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("vid0.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )
    return kwargs
