"""Gateway-level errors.

These abort the whole request. Failures scoped to a single batch object
are storage errors (see ``lfs_gateway.infra.storage.client``) and never
reach the HTTP layer.
"""

from __future__ import annotations

from typing import Mapping


class GatewayError(Exception):
    """Base class for errors mapped directly to an HTTP response."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str = "",
        *,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.headers = dict(headers or {})


class RouteNotFound(GatewayError):
    status_code = 404
    error_code = "not_found"


class MethodNotAllowed(GatewayError):
    status_code = 405
    error_code = "method_not_allowed"

    def __init__(self, allow: str) -> None:
        super().__init__("Method not allowed", headers={"Allow": allow})


class MalformedRequest(GatewayError):
    status_code = 400
    error_code = "bad_request"
