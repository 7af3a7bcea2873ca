from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from fastapi import Depends, Header, Request

from lfs_gateway.common.config import Settings, get_settings
from lfs_gateway.common.credentials import (
    InvalidPathParameter,
    SigningCredentials,
    extract_credentials,
)
from lfs_gateway.infra.storage.client import URLSigner
from lfs_gateway.infra.storage.s3_client import S3URLSigner
from lfs_gateway.services.base import PART_SIZE_BYTES, BatchConfig
from lfs_gateway.services.observer import BatchObserver, LoggingBatchObserver
from lfs_gateway.services.target import (
    TransferTarget,
    resolve_target,
    split_batch_path,
)

logger = logging.getLogger("http")

SignerFactory = Callable[[SigningCredentials], URLSigner]


@dataclass(frozen=True, slots=True)
class BatchContext:
    """Everything derived from the request line and headers, before the body."""

    credentials: SigningCredentials
    target: TransferTarget
    config: BatchConfig


def request_raw_path(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("utf-8", errors="replace")
    return request.url.path


def get_batch_context(
    request: Request,
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> BatchContext:
    segments = split_batch_path(request_raw_path(request))
    credentials, overrides, remaining = extract_credentials(authorization, segments)
    target = resolve_target(
        remaining,
        endpoint_configured=bool(
            credentials.endpoint_url or settings.S3_ENDPOINT_URL
        ),
    )
    if target.endpoint_url:
        credentials = replace(
            credentials,
            endpoint_url=target.endpoint_url,
            addressing_style=credentials.addressing_style or "path",
        )
    config = BatchConfig(
        expires_in=overrides.expires_in or settings.PRESIGN_EXPIRES_SECONDS,
        part_size=PART_SIZE_BYTES,
        max_concurrency=settings.MAX_CONCURRENCY,
    )
    return BatchContext(credentials=credentials, target=target, config=config)


def get_signer_factory(
    settings: Settings = Depends(get_settings),
) -> SignerFactory:
    def factory(credentials: SigningCredentials) -> URLSigner:
        try:
            return S3URLSigner(credentials=credentials, settings=settings)
        except ValueError as exc:
            logger.warning(
                "signer_build_failed endpoint=%s region=%s error=%s",
                credentials.endpoint_url,
                credentials.region,
                exc,
            )
            raise InvalidPathParameter(str(exc)) from exc

    return factory


def get_batch_observer(
    settings: Settings = Depends(get_settings),
) -> BatchObserver:
    return LoggingBatchObserver(enable_metrics=settings.ENABLE_METRICS)
