"""Encryption of user-supplied provider API keys.

Keys are sealed with libsodium's secretbox (XSalsa20-Poly1305, via PyNaCl)
under a master key taken from ``VID0_KEY_ENCRYPTION_KEY`` (base64, 32 bytes).
The 24-byte nonce is random per encryption and stored next to the
ciphertext. Only the last four characters of a key (its fingerprint) are
ever logged or returned.
"""

import base64
import binascii
import os
from functools import lru_cache

from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.secret import SecretBox

from vid0.logging import get_logger

logger = get_logger(__name__)

MASTER_KEY_ENV = "VID0_KEY_ENCRYPTION_KEY"
NONCE_SIZE = SecretBox.NONCE_SIZE
MASTER_KEY_SIZE = SecretBox.KEY_SIZE

# Bumped when the master key is rotated
CURRENT_MASTER_KEY_VERSION = 1


class CryptoError(Exception):
    """Raised when a key cannot be sealed or opened."""

    pass


@lru_cache(maxsize=1)
def _get_master_key() -> bytes:
    key_b64 = os.environ.get(MASTER_KEY_ENV)
    if not key_b64:
        raise CryptoError(f"{MASTER_KEY_ENV} environment variable is not set")

    try:
        key = base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"{MASTER_KEY_ENV} is not valid base64: {e}") from e

    if len(key) != MASTER_KEY_SIZE:
        raise CryptoError(f"{MASTER_KEY_ENV} must be {MASTER_KEY_SIZE} bytes, got {len(key)}")

    return key


def require_master_key() -> bytes:
    """Return the 32-byte master key, raising CryptoError if misconfigured."""
    return _get_master_key()


def clear_master_key_cache() -> None:
    """Forget the cached master key (tests, rotation)."""
    _get_master_key.cache_clear()


def compute_key_fingerprint(api_key: str) -> str:
    """Last four characters of a key, safe to show and log."""
    if len(api_key) < 4:
        return api_key
    return api_key[-4:]


def encrypt_api_key(plaintext: str) -> tuple[bytes, bytes, int, str]:
    """Seal an API key for storage.

    Returns:
        Tuple of (ciphertext, nonce, master_key_version, fingerprint).

    Raises:
        CryptoError: If the master key is missing or invalid.
    """
    box = SecretBox(require_master_key())
    nonce = os.urandom(NONCE_SIZE)
    # EncryptedMessage carries nonce + ciphertext; the nonce is stored separately
    sealed = box.encrypt(plaintext.encode("utf-8"), nonce=nonce)
    return sealed.ciphertext, nonce, CURRENT_MASTER_KEY_VERSION, compute_key_fingerprint(plaintext)


def decrypt_api_key(ciphertext: bytes, nonce: bytes, version: int) -> str:
    """Open a stored API key.

    Raises:
        CryptoError: Unknown key version, or the ciphertext fails authentication.
    """
    if version != CURRENT_MASTER_KEY_VERSION:
        raise CryptoError(f"Unknown key version: {version}")
    if len(nonce) != NONCE_SIZE:
        raise CryptoError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    box = SecretBox(require_master_key())
    try:
        return box.decrypt(ciphertext, nonce=nonce).decode("utf-8")
    except NaclCryptoError as e:
        logger.error("decryption_failed", error_type=type(e).__name__)
        raise CryptoError("Decryption failed") from e
