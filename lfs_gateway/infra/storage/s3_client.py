"""S3-compatible URL signer implementation.

This module signs requests for AWS S3, MinIO, R2 and other S3-compatible
services with the caller's own credentials. One signer (and one boto3
client) is built per batch request.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ParamValidationError,
    ReadTimeoutError,
)

from lfs_gateway.infra.storage.client import (
    MultipartInitFailure,
    MultipartUpload,
    SigningFailure,
)

if TYPE_CHECKING:
    from lfs_gateway.common.config import Settings
    from lfs_gateway.common.credentials import SigningCredentials

logger = logging.getLogger("lfs.storage")

_SESSION_LOCK = threading.Lock()

_ACCESS_DENIED_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}


def _describe_init_failure(exc: Exception) -> MultipartInitFailure:
    """Translate a backend failure into a client-readable error."""
    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return MultipartInitFailure(
            "Multipart upload initialization timed out", status=504
        )
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        if code in _ACCESS_DENIED_CODES:
            return MultipartInitFailure(
                "Access denied. Check S3 credentials and permissions.", status=403
            )
        if code == "NoSuchBucket":
            return MultipartInitFailure(
                "S3 bucket not found. Check bucket name and region.", status=404
            )
        return MultipartInitFailure(
            f"Failed to initialize multipart upload: {exc}", status=502
        )
    if isinstance(exc, ParamValidationError):
        return MultipartInitFailure(
            f"Failed to initialize multipart upload: {exc}", status=400
        )
    if isinstance(exc, (EndpointConnectionError, ConnectionClosedError)):
        return MultipartInitFailure(
            "Network error. Check your internet connection and try again.",
            status=503,
        )
    return MultipartInitFailure(f"Failed to initialize multipart upload: {exc}")


@lru_cache(maxsize=1)
def _shared_session() -> Any:
    """Session shared by all signers; it caches the parsed S3 service model."""
    import boto3

    return boto3.session.Session()


class S3URLSigner:
    """Presigns S3 requests with per-request credentials.

    Uses boto3 for all signing and for the multipart initiate call.
    """

    def __init__(
        self, *, credentials: "SigningCredentials", settings: "Settings"
    ) -> None:
        """Build the boto3 client for these credentials.

        Args:
            credentials: Access key, secret and path overrides of the request.
            settings: Application defaults for region, endpoint and timeouts.

        Raises:
            ValueError: If the resulting endpoint is rejected by botocore.
        """
        self._credentials = credentials
        self._client = self._build_client(credentials, settings)

    @staticmethod
    def _build_client(
        credentials: "SigningCredentials", settings: "Settings"
    ) -> Any:
        """Create a boto3 S3 client from credentials and settings."""
        from botocore.config import Config

        addressing_style = (
            credentials.addressing_style or settings.S3_ADDRESSING_STYLE or "auto"
        )
        config = Config(
            signature_version="s3v4",
            s3={"addressing_style": addressing_style},
            connect_timeout=settings.S3_CONNECT_TIMEOUT,
            read_timeout=settings.S3_READ_TIMEOUT,
            retries={"max_attempts": settings.S3_MAX_ATTEMPTS, "mode": "standard"},
        )

        # boto3 sessions are not thread-safe; the clients they build are
        with _SESSION_LOCK:
            return _shared_session().client(
                "s3",
                endpoint_url=credentials.endpoint_url or settings.S3_ENDPOINT_URL,
                region_name=credentials.region or settings.S3_REGION,
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
                config=config,
            )

    def _presign(
        self, client_method: str, params: dict[str, Any], expires_in: int
    ) -> str:
        try:
            url = self._client.generate_presigned_url(
                client_method,
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except ParamValidationError as exc:
            raise SigningFailure(
                f"Failed to generate presigned URL: {exc}", status=400
            ) from exc
        except Exception as exc:
            raise SigningFailure(f"Failed to generate presigned URL: {exc}") from exc

        if not url:
            raise SigningFailure("Generated presigned URL is empty")

        return str(url)

    def presign_download(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        return self._presign(
            "get_object", {"Bucket": bucket, "Key": object_key}, expires_in
        )

    def presign_upload(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        return self._presign(
            "put_object", {"Bucket": bucket, "Key": object_key}, expires_in
        )

    def presign_create_multipart(
        self, *, bucket: str, object_key: str, expires_in: int
    ) -> str:
        return self._presign(
            "create_multipart_upload",
            {"Bucket": bucket, "Key": object_key},
            expires_in,
        )

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        return self._presign(
            "upload_part",
            {
                "Bucket": bucket,
                "Key": object_key,
                "UploadId": upload_id,
                "PartNumber": int(part_number),
            },
            expires_in,
        )

    def presign_complete_multipart(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        expires_in: int,
    ) -> str:
        return self._presign(
            "complete_multipart_upload",
            {"Bucket": bucket, "Key": object_key, "UploadId": upload_id},
            expires_in,
        )

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Send the signed ``POST ?uploads`` and read ``UploadId`` from the reply."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            failure = _describe_init_failure(exc)
            logger.warning(
                "multipart_init_failed bucket=%s key=%s status=%s error=%s",
                bucket,
                object_key,
                failure.status,
                exc,
                extra={
                    "extra": {
                        "bucket": bucket,
                        "object_key": object_key,
                        "status": failure.status,
                        "access_key_id": self._credentials.access_key_id,
                    }
                },
            )
            raise failure from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise MultipartInitFailure("Failed to extract UploadId from S3 response")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )
