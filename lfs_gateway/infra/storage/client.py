"""URL signer protocol and storage error types.

This module defines the interface the batch engine uses to obtain presigned
URLs and to open multipart uploads on an S3-compatible backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class StorageError(RuntimeError):
    """Raised when a storage operation for a single object fails.

    ``status`` is reported to the client as the object's error code.
    """

    status: int = 500

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status


class SigningFailure(StorageError):
    """Raised when a presigned URL cannot be produced."""


class MultipartInitFailure(StorageError):
    """Raised when the backend does not hand out a multipart upload id."""

    status = 502


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


class URLSigner(Protocol):
    """Protocol for presigning requests against one bucket's backend.

    Every ``presign_*`` method returns an absolute URL whose query string
    carries a signature valid for ``expires_in`` seconds.
    """

    def presign_download(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        """Presign ``GET`` on the object."""
        ...

    def presign_upload(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        """Presign ``PUT`` on the object."""
        ...

    def presign_create_multipart(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        """Presign ``POST ?uploads``."""
        ...

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        """Presign ``PUT ?partNumber=N&uploadId=ID``.

        Args:
            part_number: Part number (1-based, max 10000).
        """
        ...

    def presign_complete_multipart(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        expires_in: int,
    ) -> str:
        """Presign ``POST ?uploadId=ID``.

        The caller sends the ``CompleteMultipartUpload`` XML body itself.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Open a multipart upload session on the backend.

        Raises:
            MultipartInitFailure: If the backend rejects the request or its
                reply carries no upload id.
        """
        ...
