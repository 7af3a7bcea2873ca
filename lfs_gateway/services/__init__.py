from .base import MAX_PART_COUNT, PART_SIZE_BYTES, BaseBatchService, BatchConfig
from .batch_service import (
    DOWNLOAD,
    UPLOAD,
    BatchObject,
    BatchService,
    ErrorAction,
    InvalidOperationError,
    MultipartAction,
    ObjectResult,
    SingleAction,
)
from .multipart_service import (
    MultipartPlan,
    MultipartService,
    MultipartSession,
    PartUrl,
    part_count_for,
)
from .observer import BatchObserver, LoggingBatchObserver, NullBatchObserver
from .target import TransferTarget, resolve_target, split_batch_path

__all__ = [
    "BaseBatchService",
    "BatchConfig",
    "PART_SIZE_BYTES",
    "MAX_PART_COUNT",
    "BatchService",
    "BatchObject",
    "ObjectResult",
    "SingleAction",
    "MultipartAction",
    "ErrorAction",
    "InvalidOperationError",
    "UPLOAD",
    "DOWNLOAD",
    "MultipartService",
    "MultipartPlan",
    "MultipartSession",
    "PartUrl",
    "part_count_for",
    "BatchObserver",
    "LoggingBatchObserver",
    "NullBatchObserver",
    "TransferTarget",
    "resolve_target",
    "split_batch_path",
]
