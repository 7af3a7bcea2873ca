"""Multipart upload orchestration for objects larger than one part.

An object moves through three steps: the upload is initiated on the backend,
one presigned ``PUT`` is issued per part, and finally a presigned ``POST`` for
completion is issued. The gateway never completes the upload itself: it does
not see the part bytes, so it cannot know the ETags the backend assigns.
The client uploads every part, collects the ETags and posts::

    <CompleteMultipartUpload>
      <Part><PartNumber>1</PartNumber><ETag>"..."</ETag></Part>
      ...
    </CompleteMultipartUpload>

to the completion URL.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from lfs_gateway.infra.storage.client import MultipartInitFailure
from lfs_gateway.services.base import MAX_PART_COUNT, BaseBatchService
from lfs_gateway.services.target import TransferTarget


@dataclass(frozen=True, slots=True)
class MultipartSession:
    """Upload session handed to the client; the gateway keeps no record of it."""

    upload_id: str
    part_count: int
    part_size: int


@dataclass(frozen=True, slots=True)
class PartUrl:
    part_number: int
    href: str


@dataclass(frozen=True, slots=True)
class MultipartPlan:
    session: MultipartSession
    parts: tuple[PartUrl, ...]
    complete_href: str


def part_count_for(size: int, part_size: int) -> int:
    """Number of parts needed for ``size`` bytes, i.e. ``ceil(size / part_size)``."""
    return -(-size // part_size)


class MultipartService(BaseBatchService):
    """Drives initiate, part URL issuance and completion URL issuance."""

    async def start(
        self, target: TransferTarget, oid: str, size: int
    ) -> MultipartPlan:
        """Open a multipart upload for ``oid`` and presign all of its requests.

        Raises:
            MultipartInitFailure: If the object needs more parts than the
                backend allows or the backend refuses the upload.
            SigningFailure: If a part or completion URL cannot be signed.
        """
        part_size = self._config.part_size
        part_count = part_count_for(size, part_size)
        if part_count > MAX_PART_COUNT:
            raise MultipartInitFailure(
                f"Object needs {part_count} parts; at most {MAX_PART_COUNT} are allowed",
                status=422,
            )

        object_key = target.object_key(oid)
        upload = await self._call(
            self._signer.init_multipart_upload,
            bucket=target.bucket,
            object_key=object_key,
        )
        self._observer.multipart_initiated(
            oid=oid, upload_id=upload.upload_id, part_count=part_count
        )

        parts = await asyncio.gather(
            *(
                self._presign_part(target, object_key, upload.upload_id, number)
                for number in range(1, part_count + 1)
            )
        )

        complete_href = await self._call(
            self._signer.presign_complete_multipart,
            bucket=target.bucket,
            object_key=object_key,
            upload_id=upload.upload_id,
            expires_in=self._config.expires_in,
        )

        return MultipartPlan(
            session=MultipartSession(
                upload_id=upload.upload_id,
                part_count=part_count,
                part_size=part_size,
            ),
            parts=tuple(parts),
            complete_href=complete_href,
        )

    async def _presign_part(
        self,
        target: TransferTarget,
        object_key: str,
        upload_id: str,
        part_number: int,
    ) -> PartUrl:
        href = await self._call(
            self._signer.presign_upload_part,
            bucket=target.bucket,
            object_key=object_key,
            upload_id=upload_id,
            part_number=part_number,
            expires_in=self._config.expires_in,
        )
        return PartUrl(part_number=part_number, href=href)
