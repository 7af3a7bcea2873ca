from __future__ import annotations

import os

import pytest

from lfs_gateway.common.config import get_settings
from tests.services.fake_signer import FakeSigner

for _name in (
    "PRESIGN_EXPIRES_SECONDS",
    "MAX_CONCURRENCY",
    "S3_ENDPOINT_URL",
    "S3_ADDRESSING_STYLE",
    "TRACE_HTTP",
    "LOG_FORMAT",
):
    os.environ.pop(_name, None)
os.environ["S3_REGION"] = "us-east-1"
os.environ["ENABLE_METRICS"] = "true"
get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def fake_signer() -> FakeSigner:
    return FakeSigner()
