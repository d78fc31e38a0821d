"""Authentication and authorization module.

This module provides:
- Token verification (Clerk JWKS verifier)
- Auth middleware for FastAPI
- Request state with viewer identity

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from vid0.auth.middleware import AuthMiddleware, Viewer, get_optional_viewer, get_viewer
from vid0.auth.verifier import ClerkJwksVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "get_optional_viewer",
    "ClerkJwksVerifier",
    "TokenVerifier",
]
