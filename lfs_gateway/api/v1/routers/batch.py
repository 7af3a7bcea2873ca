"""Git LFS Batch API router.

Serves ``POST [/<key>=<value>...]/<bucket>[/<prefix>...]/objects/batch``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from lfs_gateway.api.v1.assembler import GitLFSJSONResponse, render_batch_response
from lfs_gateway.api.v1.deps import (
    BatchContext,
    SignerFactory,
    get_batch_context,
    get_batch_observer,
    get_signer_factory,
)
from lfs_gateway.api.v1.schemas.batch import BatchRequestIn, BatchResponseOut
from lfs_gateway.common.errors import MalformedRequest
from lfs_gateway.services.batch_service import BatchObject, BatchService
from lfs_gateway.services.observer import BatchObserver

router = APIRouter()


@router.post(
    "/{batch_path:path}/objects/batch",
    response_class=GitLFSJSONResponse,
    response_model=BatchResponseOut,
    summary="Git LFS batch",
    description=(
        "Return presigned URLs for every requested object. Objects larger "
        "than one part are uploaded with S3 multipart upload."
    ),
)
async def batch(
    request: Request,
    ctx: BatchContext = Depends(get_batch_context),
    signer_factory: SignerFactory = Depends(get_signer_factory),
    observer: BatchObserver = Depends(get_batch_observer),
) -> GitLFSJSONResponse:
    # Parsed here rather than as a body parameter so that auth and path
    # errors win over body errors.
    raw_body = await request.body()
    try:
        payload = BatchRequestIn.model_validate_json(raw_body)
    except ValidationError as exc:
        raise MalformedRequest("Bad request format") from exc

    # boto3 client construction blocks
    signer = await run_in_threadpool(signer_factory, ctx.credentials)
    service = BatchService(signer, config=ctx.config, observer=observer)
    results = await service.process(
        payload.operation,
        ctx.target,
        [BatchObject(oid=obj.oid, size=obj.size) for obj in payload.objects],
    )
    return render_batch_response(results)
