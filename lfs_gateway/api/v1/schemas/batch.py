"""Pydantic schemas for the Git LFS Batch API.

Field names follow the wire format of the Git LFS client (``expires_in``,
``partNumber``, ``partSize``...), which mixes snake and camel case.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class BatchObjectIn(BaseModel):
    """One object requested by the client."""

    oid: str = Field(min_length=1)
    size: int = Field(ge=0)


class BatchRequestIn(BaseModel):
    """Request body of ``POST .../objects/batch``."""

    model_config = ConfigDict(extra="ignore")

    operation: Literal["upload", "download"]
    objects: list[BatchObjectIn]
    transfers: list[str] | None = None
    ref: dict | None = None
    hash_algo: str | None = None


class ActionOut(BaseModel):
    href: str
    header: dict[str, str] = Field(default_factory=dict)
    expires_in: int


class PartActionOut(ActionOut):
    partNumber: int


class MultipartInfoOut(BaseModel):
    partSize: int
    partCount: int
    uploadId: str


class ObjectErrorOut(BaseModel):
    code: int
    message: str


class ObjectOut(BaseModel):
    """Per-object entry: either ``actions`` or ``error`` is set, never both."""

    oid: str
    size: int
    authenticated: bool | None = None
    actions: dict[str, Union[ActionOut, list[PartActionOut]]] | None = None
    multipart: MultipartInfoOut | None = None
    error: ObjectErrorOut | None = None


class BatchResponseOut(BaseModel):
    transfer: str = "basic"
    objects: list[ObjectOut]


class ErrorOut(BaseModel):
    """Body of a gateway-level error response."""

    message: str
    error_code: str
    request_id: str | None = None
