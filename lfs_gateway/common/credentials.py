"""Signing credentials taken from the Basic auth header and the request path.

The Basic auth user and password become the S3 access key id and secret.
Leading ``key=value`` path segments override the remaining client options
(region, endpoint, session token, addressing style) and the presigned URL
lifetime for this request only.
"""

from __future__ import annotations

import base64
import binascii
import re
import unicodedata
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import unquote, urlsplit

from lfs_gateway.common.config import ADDRESSING_STYLES, validate_expires_in
from lfs_gateway.common.errors import GatewayError

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_OVERRIDE_ALIASES = {
    "region": "region",
    "endpoint": "endpoint_url",
    "endpoint_url": "endpoint_url",
    "session_token": "session_token",
    "sessionToken": "session_token",
    "token": "session_token",
    "addressing_style": "addressing_style",
    "expiry": "expires_in",
    "expires_in": "expires_in",
}


class AuthMissing(GatewayError):
    status_code = 401
    error_code = "unauthorized"

    def __init__(self, message: str = "Credentials needed") -> None:
        super().__init__(
            message, headers={"LFS-Authenticate": 'Basic realm="Git LFS"'}
        )


class AuthMalformed(GatewayError):
    status_code = 400
    error_code = "malformed_authorization"


class InvalidPathParameter(GatewayError):
    status_code = 400
    error_code = "invalid_path_parameter"


@dataclass(frozen=True, slots=True)
class PathOverrides:
    region: str | None = None
    endpoint_url: str | None = None
    session_token: str | None = None
    addressing_style: str | None = None
    expires_in: int | None = None


@dataclass(frozen=True, slots=True)
class SigningCredentials:
    """Credentials and client options used to sign every URL of one request."""

    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    region: str | None = None
    endpoint_url: str | None = None
    addressing_style: str | None = None

    def __repr__(self) -> str:
        return (
            f"SigningCredentials(access_key_id={self.access_key_id!r}, "
            f"region={self.region!r}, endpoint_url={self.endpoint_url!r})"
        )


def parse_basic_authorization(header: str | None) -> tuple[str, str]:
    """Decode a ``Basic`` Authorization header into ``(user, password)``.

    Raises:
        AuthMissing: If the header is absent.
        AuthMalformed: If the scheme is not ``Basic``, the payload is empty or
            not valid base64/UTF-8, lacks a colon, or holds control characters.
    """
    if not header:
        raise AuthMissing()

    scheme, _, encoded = header.partition(" ")
    encoded = encoded.strip()
    if scheme != "Basic" or not encoded:
        raise AuthMalformed("Authorization must use the Basic scheme")

    # Some clients drop the trailing "=" padding
    encoded += "=" * (-len(encoded) % 4)
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AuthMalformed("Authorization payload is not valid base64") from exc

    try:
        decoded = unicodedata.normalize("NFC", raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise AuthMalformed("Authorization payload is not valid UTF-8") from exc

    user, sep, password = decoded.partition(":")
    if not sep or _CONTROL_CHARS.search(decoded):
        raise AuthMalformed("Authorization payload must be user:password")
    return user, password


def normalize_endpoint(value: str) -> str:
    if "://" not in value:
        value = f"https://{value}"
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidPathParameter(f"Invalid endpoint: {value}")
    return value.rstrip("/")


def parse_path_overrides(
    segments: Sequence[str],
) -> tuple[PathOverrides, list[str]]:
    """Consume leading ``key=value`` segments.

    Parsing stops at the first segment without ``=``; that segment and
    everything after it are returned untouched.
    """
    values: dict[str, object] = {}
    consumed = 0
    for segment in segments:
        key, sep, value = segment.partition("=")
        if not sep:
            break
        consumed += 1
        key = unquote(key)
        value = unquote(value)
        field_name = _OVERRIDE_ALIASES.get(key)
        if field_name is None:
            raise InvalidPathParameter(f"Unsupported path parameter: {key}")
        if not value:
            raise InvalidPathParameter(f"Empty value for path parameter: {key}")

        if field_name == "expires_in":
            try:
                values[field_name] = validate_expires_in(int(value))
            except ValueError as exc:
                raise InvalidPathParameter(f"Invalid expiry: {value}") from exc
        elif field_name == "endpoint_url":
            values[field_name] = normalize_endpoint(value)
        elif field_name == "addressing_style":
            style = value.lower()
            if style not in ADDRESSING_STYLES:
                raise InvalidPathParameter(f"Invalid addressing_style: {value}")
            values[field_name] = style
        else:
            values[field_name] = value

    return PathOverrides(**values), list(segments[consumed:])


def build_signing_credentials(
    user: str, password: str, overrides: PathOverrides
) -> SigningCredentials:
    return SigningCredentials(
        access_key_id=user,
        secret_access_key=password,
        session_token=overrides.session_token,
        region=overrides.region,
        endpoint_url=overrides.endpoint_url,
        addressing_style=overrides.addressing_style,
    )


def extract_credentials(
    header: str | None, segments: Sequence[str]
) -> tuple[SigningCredentials, PathOverrides, list[str]]:
    """Combine the Authorization header with the leading path overrides.

    The header is checked first, so a request without credentials is
    rejected before its path is looked at. Returns the signing credentials,
    the overrides (which also carry the request's expiry) and the segments
    left for the target.
    """
    user, password = parse_basic_authorization(header)
    overrides, remaining = parse_path_overrides(segments)
    credentials = build_signing_credentials(user, password, overrides)
    return credentials, overrides, remaining
