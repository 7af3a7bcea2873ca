import asyncio
import logging

import uvicorn
from botocore.exceptions import (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lfs_gateway import __version__
from lfs_gateway.api.v1.assembler import NO_STORE_HEADERS, GitLFSJSONResponse
from lfs_gateway.api.v1.routers.batch import router as batch_router
from lfs_gateway.common.config import get_settings
from lfs_gateway.common.errors import GatewayError, MethodNotAllowed
from lfs_gateway.common.logging import setup_logging
from lfs_gateway.infra.observability.metrics import metrics_app
from lfs_gateway.infra.observability.middleware import MetricsMiddleware

# Bucket names cannot start with "-", so operational routes never shadow one
OPS_PREFIX = "/-"

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    415: "unsupported_media_type",
    422: "validation_error",
    429: "too_many_requests",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
    504: "gateway_timeout",
}

DEFAULT_MESSAGE_BY_STATUS = {
    404: "Not found",
    405: "Method not allowed",
    500: "Internal server error",
    503: "Network error occurred",
    504: "Request timed out",
}


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _status_for_unexpected(exc: Exception) -> int:
    if isinstance(
        exc, (ConnectTimeoutError, ReadTimeoutError, asyncio.TimeoutError)
    ):
        return 504
    if isinstance(
        exc, (EndpointConnectionError, ConnectionClosedError, ConnectionError)
    ):
        return 503
    return 500


def _error_response(
    request: Request,
    *,
    status_code: int,
    message: str,
    error_code: str | None = None,
    headers: dict[str, str] | None = None,
) -> GitLFSJSONResponse:
    logger = logging.getLogger("http")
    logger.log(
        logging.WARNING if status_code < 500 else logging.ERROR,
        "gateway_error status=%s message=%s method=%s path=%s request_id=%s",
        status_code,
        message,
        request.method,
        request.url.path,
        request.headers.get("X-Request-Id"),
        extra={
            "extra": {
                "status": status_code,
                "detail": message,
                "method": request.method,
                "route": request.url.path,
                "request_id": request.headers.get("X-Request-Id"),
            }
        },
    )
    return GitLFSJSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "error_code": _resolve_error_code(status_code, error_code),
            "request_id": request.headers.get("X-Request-Id"),
        },
        headers={**NO_STORE_HEADERS, **(headers or {})},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, fmt=settings.LOG_FORMAT)
    app = FastAPI(
        title="Git LFS S3 Gateway",
        version=__version__,
        description="Git LFS Batch API issuing presigned S3 URLs",
    )

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount(f"{OPS_PREFIX}/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("lfs.startup")
        startup_logger.info(
            "Gateway ready [event=startup] (region=%s, endpoint=%s, "
            "addressing_style=%s, expires_in=%s, max_concurrency=%s)",
            settings.S3_REGION,
            settings.S3_ENDPOINT_URL or "<aws>",
            settings.S3_ADDRESSING_STYLE,
            settings.PRESIGN_EXPIRES_SECONDS,
            settings.MAX_CONCURRENCY,
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return _error_response(
            request,
            status_code=exc.status_code,
            message=exc.message or DEFAULT_MESSAGE_BY_STATUS.get(exc.status_code, ""),
            error_code=exc.error_code,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else None
        return _error_response(
            request,
            status_code=exc.status_code,
            message=detail or DEFAULT_MESSAGE_BY_STATUS.get(exc.status_code, ""),
            headers=dict(exc.headers or {}),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _error_response(
            request, status_code=400, message="Bad request format"
        )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        status_code = _status_for_unexpected(exc)
        return _error_response(
            request,
            status_code=status_code,
            message=DEFAULT_MESSAGE_BY_STATUS[status_code],
        )

    @app.api_route(
        "/",
        methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        include_in_schema=False,
    )
    async def homepage(request: Request):
        if request.method != "GET":
            raise MethodNotAllowed("GET")
        return RedirectResponse(settings.HOMEPAGE_URL, status_code=302)

    @app.get(f"{OPS_PREFIX}/health")
    async def health():
        return {"status": "ok"}

    app.include_router(batch_router, tags=["batch"])

    return app


app = create_app()


def run() -> None:
    uvicorn.run("lfs_gateway.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
