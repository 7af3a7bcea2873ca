"""Diagnostics hooks for the batch engine.

The engine never logs on its own; it reports through a ``BatchObserver``
handed to it by the caller.
"""

from __future__ import annotations

import logging
from typing import Protocol

from lfs_gateway.infra.observability.metrics import BATCH_OBJECTS, MULTIPART_PARTS
from lfs_gateway.infra.storage.client import StorageError


class BatchObserver(Protocol):
    def object_succeeded(
        self, *, operation: str, oid: str, size: int, strategy: str
    ) -> None: ...

    def object_failed(
        self,
        *,
        operation: str,
        oid: str,
        size: int,
        strategy: str,
        error: Exception,
    ) -> None: ...

    def multipart_initiated(
        self, *, oid: str, upload_id: str, part_count: int
    ) -> None: ...

    def batch_completed(
        self, *, operation: str, total: int, failed: int, duration_ms: float
    ) -> None: ...


class NullBatchObserver:
    def object_succeeded(self, **kwargs) -> None:
        pass

    def object_failed(self, **kwargs) -> None:
        pass

    def multipart_initiated(self, **kwargs) -> None:
        pass

    def batch_completed(self, **kwargs) -> None:
        pass


class LoggingBatchObserver:
    """Reports engine events to the ``lfs.batch`` logger and Prometheus."""

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        enable_metrics: bool = True,
    ) -> None:
        self._logger = logger or logging.getLogger("lfs.batch")
        self._enable_metrics = enable_metrics

    def object_succeeded(
        self, *, operation: str, oid: str, size: int, strategy: str
    ) -> None:
        if self._enable_metrics:
            BATCH_OBJECTS.labels(operation, strategy, "ok").inc()
        self._logger.debug(
            "object_signed operation=%s oid=%s size=%s strategy=%s",
            operation,
            oid,
            size,
            strategy,
            extra={
                "extra": {
                    "operation": operation,
                    "oid": oid,
                    "size": size,
                    "strategy": strategy,
                }
            },
        )

    def object_failed(
        self,
        *,
        operation: str,
        oid: str,
        size: int,
        strategy: str,
        error: Exception,
    ) -> None:
        if self._enable_metrics:
            BATCH_OBJECTS.labels(operation, strategy, "error").inc()
        expected = isinstance(error, StorageError)
        self._logger.log(
            logging.WARNING if expected else logging.ERROR,
            "object_failed operation=%s oid=%s size=%s strategy=%s error=%s",
            operation,
            oid,
            size,
            strategy,
            error,
            exc_info=None if expected else error,
            extra={
                "extra": {
                    "operation": operation,
                    "oid": oid,
                    "size": size,
                    "strategy": strategy,
                    "error": str(error),
                    "error_type": type(error).__name__,
                }
            },
        )

    def multipart_initiated(
        self, *, oid: str, upload_id: str, part_count: int
    ) -> None:
        if self._enable_metrics:
            MULTIPART_PARTS.inc(part_count)
        self._logger.info(
            "multipart_initiated oid=%s upload_id=%s part_count=%s",
            oid,
            upload_id,
            part_count,
            extra={
                "extra": {
                    "oid": oid,
                    "upload_id": upload_id,
                    "part_count": part_count,
                }
            },
        )

    def batch_completed(
        self, *, operation: str, total: int, failed: int, duration_ms: float
    ) -> None:
        self._logger.info(
            "batch_completed operation=%s objects=%s failed=%s duration_ms=%.3f",
            operation,
            total,
            failed,
            duration_ms,
            extra={
                "extra": {
                    "operation": operation,
                    "objects": total,
                    "failed": failed,
                    "duration_ms": duration_ms,
                }
            },
        )
