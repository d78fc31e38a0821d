"""Attachment storage: signed uploads, public URLs and deletes."""

from vid0.storage.client import (
    FakeStorageClient,
    SignedUpload,
    StorageClient,
    StorageClientBase,
    StorageError,
    build_storage_client,
)
from vid0.storage.paths import build_attachment_path, file_extension, path_belongs_to

__all__ = [
    "FakeStorageClient",
    "SignedUpload",
    "StorageClient",
    "StorageClientBase",
    "StorageError",
    "build_attachment_path",
    "build_storage_client",
    "file_extension",
    "path_belongs_to",
]
