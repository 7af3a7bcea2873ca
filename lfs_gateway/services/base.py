from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from starlette.concurrency import run_in_threadpool

from lfs_gateway.infra.storage.client import URLSigner
from lfs_gateway.services.observer import BatchObserver, NullBatchObserver

# Smallest part size S3 accepts for every part but the last
PART_SIZE_BYTES = 5 * 1024 * 1024
# Maximum part number allowed by S3
MAX_PART_COUNT = 10000

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class BatchConfig:
    """Immutable engine settings for one batch request."""

    expires_in: int
    part_size: int = PART_SIZE_BYTES
    max_concurrency: int = 32

    def __post_init__(self) -> None:
        if self.part_size <= 0:
            raise ValueError("part_size must be positive")
        if self.expires_in <= 0:
            raise ValueError("expires_in must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")


class BaseBatchService:
    """Shared plumbing for services that talk to the URL signer.

    Signer calls block (boto3), so they run in the thread pool. Only these
    leaf calls take a slot of the limiter: callers may fan out freely
    without risking a deadlock on nested gathers.
    """

    def __init__(
        self,
        signer: URLSigner,
        *,
        config: BatchConfig,
        observer: BatchObserver | None = None,
        limiter: asyncio.Semaphore | None = None,
    ) -> None:
        self._signer = signer
        self._config = config
        self._observer = observer or NullBatchObserver()
        self._limiter = limiter or asyncio.Semaphore(config.max_concurrency)

    @property
    def config(self) -> BatchConfig:
        return self._config

    async def _call(self, func: Callable[..., T], **kwargs: Any) -> T:
        async with self._limiter:
            return await run_in_threadpool(func, **kwargs)
