"""Turns engine results into the Git LFS batch response."""

from __future__ import annotations

from typing import Any, Iterable

from fastapi.responses import JSONResponse

from lfs_gateway.api.v1.schemas.batch import (
    ActionOut,
    BatchResponseOut,
    MultipartInfoOut,
    ObjectErrorOut,
    ObjectOut,
    PartActionOut,
)
from lfs_gateway.services.batch_service import (
    COMPLETE_CONTENT_TYPE,
    UPLOAD,
    UPLOAD_CONTENT_TYPE,
    ErrorAction,
    MultipartAction,
    ObjectResult,
    SingleAction,
)

LFS_MEDIA_TYPE = "application/vnd.git-lfs+json"
NO_STORE_HEADERS = {"Cache-Control": "no-store"}


class GitLFSJSONResponse(JSONResponse):
    media_type = LFS_MEDIA_TYPE


def _object_out(result: ObjectResult) -> ObjectOut:
    if isinstance(result, SingleAction):
        return ObjectOut(
            oid=result.oid,
            size=result.size,
            authenticated=True,
            actions={
                result.operation: ActionOut(
                    href=result.href,
                    header=dict(result.header),
                    expires_in=result.expires_in,
                )
            },
        )
    if isinstance(result, MultipartAction):
        return ObjectOut(
            oid=result.oid,
            size=result.size,
            authenticated=True,
            actions={
                UPLOAD: [
                    PartActionOut(
                        href=part.href,
                        header={"Content-Type": UPLOAD_CONTENT_TYPE},
                        expires_in=result.expires_in,
                        partNumber=part.part_number,
                    )
                    for part in result.parts
                ],
                "verify": ActionOut(
                    href=result.verify_href,
                    header={"Content-Type": COMPLETE_CONTENT_TYPE},
                    expires_in=result.expires_in,
                ),
            },
            multipart=MultipartInfoOut(
                partSize=result.session.part_size,
                partCount=result.session.part_count,
                uploadId=result.session.upload_id,
            ),
        )
    if isinstance(result, ErrorAction):
        return ObjectOut(
            oid=result.oid,
            size=result.size,
            error=ObjectErrorOut(code=result.code, message=result.message),
        )
    raise TypeError(f"Unexpected batch result: {type(result).__name__}")


def assemble_batch_response(results: Iterable[ObjectResult]) -> BatchResponseOut:
    return BatchResponseOut(
        transfer="basic", objects=[_object_out(result) for result in results]
    )


def render_batch_response(results: Iterable[ObjectResult]) -> GitLFSJSONResponse:
    body: dict[str, Any] = assemble_batch_response(results).model_dump(
        exclude_none=True
    )
    return GitLFSJSONResponse(
        status_code=200, content=body, headers=dict(NO_STORE_HEADERS)
    )
