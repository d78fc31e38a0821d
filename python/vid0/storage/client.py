"""Object storage client for chat attachments.

Attachments are uploaded by the browser straight to the bucket with a signed
upload token; the API only signs, records and deletes. All methods take the
full storage path.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

import httpx

from vid0.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedUpload:
    """Signed upload target returned to the browser."""

    path: str
    token: str
    url: str


class StorageError(Exception):
    """Storage operation error."""

    def __init__(self, message: str, code: str = "E_STORAGE_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def sign_upload(self, path: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        """Create a signed upload target for a direct browser upload.

        Raises:
            StorageError: If signing fails.
        """
        ...

    @abstractmethod
    def public_url(self, path: str) -> str:
        """URL the stored object is served from."""
        ...

    @abstractmethod
    def delete_object(self, path: str) -> None:
        """Delete an object. Best-effort: logs failures, never raises."""
        ...


class StorageClient(StorageClientBase):
    """Supabase Storage client over its REST API."""

    def __init__(self, storage_url: str, service_key: str, bucket: str):
        self._base_url = storage_url.rstrip("/")
        self._bucket = bucket
        self._storage_url = f"{self._base_url}/storage/v1"
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def sign_upload(self, path: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        url = f"{self._storage_url}/object/upload/sign/{self._bucket}/{path}"

        try:
            with httpx.Client() as client:
                response = client.post(
                    url,
                    headers={**self._headers, "x-upsert": "false"},
                    json={"expiresIn": expires_in, "contentType": content_type},
                    timeout=30.0,
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to sign upload: {e}", code="E_SIGN_UPLOAD_FAILED") from e

        if response.status_code != 200:
            raise StorageError(
                f"Failed to sign upload: {response.status_code} {response.text}",
                code="E_SIGN_UPLOAD_FAILED",
            )

        data = response.json()
        signed_url = data.get("url", "")
        token = data.get("token", "")
        if not token and "token=" in signed_url:
            token = signed_url.split("token=")[1].split("&")[0]
        if not token:
            raise StorageError("Failed to sign upload: missing token", code="E_SIGN_UPLOAD_FAILED")

        if signed_url and not signed_url.startswith(("http://", "https://")):
            signed_url = f"{self._storage_url}/{signed_url.lstrip('/')}"
        return SignedUpload(path=path, token=token, url=signed_url)

    def public_url(self, path: str) -> str:
        return f"{self._storage_url}/object/public/{self._bucket}/{path}"

    def delete_object(self, path: str) -> None:
        url = f"{self._storage_url}/object/{self._bucket}/{path}"
        try:
            with httpx.Client() as client:
                response = client.delete(url, headers=self._headers, timeout=30.0)
            if response.status_code not in (200, 204, 404):
                logger.warning(
                    "Storage delete failed: %s %s", response.status_code, response.text
                )
        except httpx.HTTPError as e:
            logger.warning("Storage delete error: %s", e)


class FakeStorageClient(StorageClientBase):
    """In-memory storage for local development and tests."""

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self.signed_uploads: dict[str, str] = {}
        self.deleted: list[str] = []

    def sign_upload(self, path: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        token = f"fake-token-{uuid4()}"
        self.signed_uploads[path] = token
        return SignedUpload(
            path=path, token=token, url=f"https://fake-storage.test/upload/{path}?token={token}"
        )

    def public_url(self, path: str) -> str:
        return f"https://fake-storage.test/public/{path}"

    def delete_object(self, path: str) -> None:
        self._objects.pop(path, None)
        self.deleted.append(path)

    # Test helpers

    def put_object(self, path: str, content: bytes) -> None:
        self._objects[path] = content

    def has_object(self, path: str) -> bool:
        return path in self._objects


def build_storage_client(settings: Settings) -> StorageClientBase:
    """Real client when storage is configured, in-memory fake otherwise."""
    if settings.storage_url and settings.storage_service_key:
        return StorageClient(
            storage_url=settings.storage_url,
            service_key=settings.storage_service_key,
            bucket=settings.storage_bucket,
        )
    return FakeStorageClient()
