"""Batch processing: one presigned action set (or error) per requested object.

Objects are processed concurrently and independently. A failure while
signing one object turns into an ``ErrorAction`` for that object only;
siblings and the batch as a whole are never aborted.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Sequence, Union

from lfs_gateway.infra.storage.client import StorageError, URLSigner
from lfs_gateway.services.base import BaseBatchService, BatchConfig
from lfs_gateway.services.multipart_service import (
    MultipartService,
    MultipartSession,
    PartUrl,
)
from lfs_gateway.services.observer import BatchObserver
from lfs_gateway.services.target import TransferTarget

UPLOAD = "upload"
DOWNLOAD = "download"
OPERATIONS: tuple[str, ...] = (UPLOAD, DOWNLOAD)

UPLOAD_CONTENT_TYPE = "application/octet-stream"
COMPLETE_CONTENT_TYPE = "application/xml"


@dataclass(frozen=True, slots=True)
class BatchObject:
    oid: str
    size: int


@dataclass(frozen=True, slots=True)
class SingleAction:
    """One presigned ``PUT`` (upload) or ``GET`` (download)."""

    oid: str
    size: int
    operation: str
    href: str
    expires_in: int
    header: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MultipartAction:
    """Per-part ``PUT`` URLs plus the completion URL for one upload."""

    oid: str
    size: int
    parts: tuple[PartUrl, ...]
    verify_href: str
    expires_in: int
    session: MultipartSession


@dataclass(frozen=True, slots=True)
class ErrorAction:
    """Terminal failure for one object."""

    oid: str
    size: int
    code: int
    message: str


ObjectResult = Union[SingleAction, MultipartAction, ErrorAction]


class InvalidOperationError(ValueError):
    """Raised when the batch operation is neither upload nor download."""


class BatchService(BaseBatchService):
    """Turns a batch of object requests into presigned actions."""

    def __init__(
        self,
        signer: URLSigner,
        *,
        config: BatchConfig,
        observer: BatchObserver | None = None,
        limiter: asyncio.Semaphore | None = None,
    ) -> None:
        super().__init__(signer, config=config, observer=observer, limiter=limiter)
        self._multipart = MultipartService(
            signer,
            config=config,
            observer=self._observer,
            limiter=self._limiter,
        )

    def uses_multipart(self, operation: str, size: int) -> bool:
        return operation == UPLOAD and size > self._config.part_size

    async def process(
        self,
        operation: str,
        target: TransferTarget,
        objects: Sequence[BatchObject],
    ) -> list[ObjectResult]:
        """Sign every object; results keep the order of ``objects``."""
        if operation not in OPERATIONS:
            raise InvalidOperationError(f"Unsupported operation: {operation}")

        start = time.perf_counter()
        results = await asyncio.gather(
            *(self._process_object(operation, target, obj) for obj in objects)
        )
        failed = sum(1 for result in results if isinstance(result, ErrorAction))
        self._observer.batch_completed(
            operation=operation,
            total=len(results),
            failed=failed,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return list(results)

    async def _process_object(
        self, operation: str, target: TransferTarget, obj: BatchObject
    ) -> ObjectResult:
        strategy = "multipart" if self.uses_multipart(operation, obj.size) else "single"
        try:
            if strategy == "multipart":
                result: ObjectResult = await self._multipart_action(target, obj)
            else:
                result = await self._single_action(operation, target, obj)
        except StorageError as exc:
            self._observer.object_failed(
                operation=operation,
                oid=obj.oid,
                size=obj.size,
                strategy=strategy,
                error=exc,
            )
            return ErrorAction(
                oid=obj.oid, size=obj.size, code=exc.status, message=str(exc)
            )
        except Exception as exc:
            self._observer.object_failed(
                operation=operation,
                oid=obj.oid,
                size=obj.size,
                strategy=strategy,
                error=exc,
            )
            return ErrorAction(
                oid=obj.oid,
                size=obj.size,
                code=500,
                message=str(exc) or "Internal server error processing object",
            )

        self._observer.object_succeeded(
            operation=operation, oid=obj.oid, size=obj.size, strategy=strategy
        )
        return result

    async def _single_action(
        self, operation: str, target: TransferTarget, obj: BatchObject
    ) -> SingleAction:
        if operation == UPLOAD:
            presign = self._signer.presign_upload
            header = {"Content-Type": UPLOAD_CONTENT_TYPE}
        else:
            presign = self._signer.presign_download
            header = {}

        href = await self._call(
            presign,
            bucket=target.bucket,
            object_key=target.object_key(obj.oid),
            expires_in=self._config.expires_in,
        )
        return SingleAction(
            oid=obj.oid,
            size=obj.size,
            operation=operation,
            href=href,
            expires_in=self._config.expires_in,
            header=header,
        )

    async def _multipart_action(
        self, target: TransferTarget, obj: BatchObject
    ) -> MultipartAction:
        plan = await self._multipart.start(target, obj.oid, obj.size)
        return MultipartAction(
            oid=obj.oid,
            size=obj.size,
            parts=plan.parts,
            verify_href=plan.complete_href,
            expires_in=self._config.expires_in,
            session=plan.session,
        )
