"""Object storage signing layer.

This module provides a protocol-based abstraction over presigned-URL
issuance, implemented for S3 and S3-compatible services.
"""

from .client import (
    MultipartInitFailure,
    MultipartUpload,
    SigningFailure,
    StorageError,
    URLSigner,
)

__all__ = [
    "MultipartInitFailure",
    "MultipartUpload",
    "SigningFailure",
    "StorageError",
    "URLSigner",
]
