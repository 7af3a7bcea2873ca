from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from urllib.parse import unquote

from lfs_gateway.common.credentials import normalize_endpoint
from lfs_gateway.common.errors import RouteNotFound

BATCH_SUFFIX = ("objects", "batch")


@dataclass(frozen=True, slots=True)
class TransferTarget:
    """Bucket and key prefix shared by every object of one request.

    ``endpoint_url`` is set when the path names the storage host itself,
    as in ``/<account>.r2.cloudflarestorage.com/<bucket>/objects/batch``.
    """

    bucket: str
    prefix: str | None = None
    endpoint_url: str | None = None

    def object_key(self, oid: str) -> str:
        if not self.prefix:
            return oid
        return f"{self.prefix}/{oid}"


def split_batch_path(raw_path: str) -> list[str]:
    """Return the still-encoded segments in front of ``/objects/batch``."""
    segments = raw_path.lstrip("/").split("/")
    if len(segments) < 2 or tuple(segments[-2:]) != BATCH_SUFFIX:
        raise RouteNotFound("Not found")
    return segments[:-2]


def looks_like_host(segment: str) -> bool:
    # Bucket names never hold ":"; a dot is only read as a host when no
    # endpoint is configured
    return "." in segment or ":" in segment


def resolve_target(
    segments: Sequence[str], *, endpoint_configured: bool = False
) -> TransferTarget:
    """Derive the bucket and key prefix from the segments after the overrides.

    Without a configured endpoint, a leading segment that looks like a host
    name is the storage endpoint and the bucket follows it.
    """
    parts = [unquote(segment) for segment in segments if segment]
    if not parts or not parts[0]:
        raise RouteNotFound("Missing bucket in path")

    endpoint_url = None
    if not endpoint_configured and looks_like_host(parts[0]):
        endpoint_url = normalize_endpoint(parts.pop(0))
        if not parts:
            raise RouteNotFound("Missing bucket after storage host")

    prefix = "/".join(part.strip("/") for part in parts[1:] if part.strip("/"))
    return TransferTarget(
        bucket=parts[0], prefix=prefix or None, endpoint_url=endpoint_url
    )
