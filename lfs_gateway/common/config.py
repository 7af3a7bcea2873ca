from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from lfs_gateway.common.logging import LOG_FORMATS

ENV_FILE = Path(".env")

DEFAULT_HOMEPAGE_URL = "https://github.com/aibtcdev/git-lfs-s3-proxy"
DEFAULT_PRESIGN_EXPIRES_SECONDS = 3600
# SigV4 presigned URLs cannot outlive seven days
MAX_PRESIGN_EXPIRES_SECONDS = 7 * 24 * 3600
ADDRESSING_STYLES: tuple[str, ...] = ("auto", "path", "virtual")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_expires_in(value: int) -> int:
    if value < 1 or value > MAX_PRESIGN_EXPIRES_SECONDS:
        raise ValueError(
            f"expiry must be between 1 and {MAX_PRESIGN_EXPIRES_SECONDS} seconds"
        )
    return value


@dataclass
class Settings:
    HOMEPAGE_URL: str = DEFAULT_HOMEPAGE_URL
    PRESIGN_EXPIRES_SECONDS: int = DEFAULT_PRESIGN_EXPIRES_SECONDS
    MAX_CONCURRENCY: int = 32
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "auto"
    S3_CONNECT_TIMEOUT: int = 5
    S3_READ_TIMEOUT: int = 30
    S3_MAX_ATTEMPTS: int = 3
    ENABLE_METRICS: bool = True
    TRACE_HTTP: bool = False
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    def __post_init__(self) -> None:
        validate_expires_in(self.PRESIGN_EXPIRES_SECONDS)
        if self.MAX_CONCURRENCY < 1:
            raise ValueError("MAX_CONCURRENCY must be at least 1.")
        style = self.S3_ADDRESSING_STYLE.strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        self.S3_ADDRESSING_STYLE = style
        self.LOG_LEVEL = self.LOG_LEVEL.strip().upper()
        self.LOG_FORMAT = self.LOG_FORMAT.strip().lower()
        if self.LOG_FORMAT not in LOG_FORMATS:
            raise ValueError(
                f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}."
            )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            HOMEPAGE_URL=os.environ.get("HOMEPAGE_URL", cls.HOMEPAGE_URL),
            PRESIGN_EXPIRES_SECONDS=int(
                os.environ.get("PRESIGN_EXPIRES_SECONDS", cls.PRESIGN_EXPIRES_SECONDS)
            ),
            MAX_CONCURRENCY=int(
                os.environ.get("MAX_CONCURRENCY", cls.MAX_CONCURRENCY)
            ),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_CONNECT_TIMEOUT=int(
                os.environ.get("S3_CONNECT_TIMEOUT", cls.S3_CONNECT_TIMEOUT)
            ),
            S3_READ_TIMEOUT=int(
                os.environ.get("S3_READ_TIMEOUT", cls.S3_READ_TIMEOUT)
            ),
            S3_MAX_ATTEMPTS=int(
                os.environ.get("S3_MAX_ATTEMPTS", cls.S3_MAX_ATTEMPTS)
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
