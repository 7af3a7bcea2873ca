"""API tests for the Git LFS batch endpoint."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.exceptions import EndpointConnectionError
from fastapi.testclient import TestClient

from lfs_gateway.api.v1.deps import get_signer_factory
from lfs_gateway.common.config import DEFAULT_HOMEPAGE_URL, get_settings
from lfs_gateway.infra.storage.client import SigningFailure
from lfs_gateway.main import create_app
from tests.helpers import MiB, basic_auth

LFS_JSON = "application/vnd.git-lfs+json"
AUTH = {"Authorization": basic_auth("AKIAEXAMPLE", "secret-example")}


@pytest.fixture()
def captured_credentials():
    return []


@pytest.fixture()
def client(fake_signer, captured_credentials):
    app = create_app()

    def factory(credentials):
        captured_credentials.append(credentials)
        return fake_signer

    app.dependency_overrides[get_signer_factory] = lambda: factory
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def _batch(client, path, operation="download", objects=None, headers=AUTH):
    payload = {
        "operation": operation,
        "transfers": ["basic"],
        "objects": objects if objects is not None else [{"oid": "abc", "size": 10}],
    }
    return client.post(path, json=payload, headers=headers)


class TestRouting:
    def test_homepage_redirects(self, client):
        resp = client.get("/", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == DEFAULT_HOMEPAGE_URL

    def test_homepage_rejects_other_methods(self, client):
        resp = client.post("/")
        assert resp.status_code == 405
        assert resp.headers["allow"] == "GET"
        assert resp.json()["error_code"] == "method_not_allowed"

    def test_unknown_path_is_not_found(self, client):
        resp = client.get("/bucket/objects")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith(LFS_JSON)
        assert resp.json()["error_code"] == "not_found"

    def test_batch_path_only_accepts_post(self, client):
        resp = client.get("/bucket/objects/batch", headers=AUTH)
        assert resp.status_code == 405
        assert resp.headers["allow"] == "POST"

    def test_overrides_without_bucket_are_not_found(self, client):
        resp = _batch(client, "/region=eu-west-1/objects/batch")
        assert resp.status_code == 404

    def test_health(self, client):
        resp = client.get("/-/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAuthorization:
    def test_missing_credentials(self, client, fake_signer):
        resp = _batch(client, "/bucket/objects/batch", headers={})

        assert resp.status_code == 401
        assert resp.headers["lfs-authenticate"] == 'Basic realm="Git LFS"'
        assert resp.headers["content-type"].startswith(LFS_JSON)
        body = resp.json()
        assert body["message"] == "Credentials needed"
        assert body["error_code"] == "unauthorized"
        assert fake_signer.calls == []

    def test_non_basic_scheme(self, client):
        resp = _batch(
            client, "/bucket/objects/batch", headers={"Authorization": "Bearer abc"}
        )
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "malformed_authorization"

    def test_auth_is_checked_before_body(self, client):
        resp = client.post(
            "/bucket/objects/batch",
            content=b"{not json",
            headers={"Content-Type": LFS_JSON},
        )
        assert resp.status_code == 401

    def test_request_id_is_echoed_in_error_body(self, client):
        resp = _batch(
            client, "/bucket/objects/batch", headers={"X-Request-Id": "req-42"}
        )
        assert resp.json()["request_id"] == "req-42"
        assert resp.headers["x-request-id"] == "req-42"


class TestRequestValidation:
    def test_malformed_json(self, client):
        resp = client.post(
            "/bucket/objects/batch",
            content=b"{not json",
            headers={**AUTH, "Content-Type": LFS_JSON},
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Bad request format"

    @pytest.mark.parametrize(
        "payload",
        [
            {"operation": "delete", "objects": []},
            {"objects": []},
            {"operation": "download"},
            {"operation": "download", "objects": [{"oid": "a", "size": -1}]},
            {"operation": "download", "objects": [{"oid": "", "size": 1}]},
            {"operation": "download", "objects": [{"size": 1}]},
        ],
    )
    def test_invalid_payload(self, client, payload):
        resp = client.post("/bucket/objects/batch", json=payload, headers=AUTH)
        assert resp.status_code == 400

    def test_unknown_path_parameter(self, client):
        resp = _batch(client, "/colour=blue/bucket/objects/batch")
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "invalid_path_parameter"

    def test_unknown_request_fields_are_ignored(self, client):
        resp = client.post(
            "/bucket/objects/batch",
            json={
                "operation": "download",
                "objects": [{"oid": "abc", "size": 1}],
                "ref": {"name": "refs/heads/main"},
                "hash_algo": "sha256",
                "future_field": True,
            },
            headers=AUTH,
        )
        assert resp.status_code == 200


class TestBatchResponse:
    def test_download(self, client, captured_credentials):
        resp = _batch(client, "/bucket/org/repo/objects/batch")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(LFS_JSON)
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {
            "transfer": "basic",
            "objects": [
                {
                    "oid": "abc",
                    "size": 10,
                    "authenticated": True,
                    "actions": {
                        "download": {
                            "href": "https://fake-s3/bucket/org/repo/abc"
                            "?method=GET&expires=3600",
                            "header": {},
                            "expires_in": 3600,
                        }
                    },
                }
            ],
        }
        (credentials,) = captured_credentials
        assert credentials.access_key_id == "AKIAEXAMPLE"
        assert credentials.secret_access_key == "secret-example"

    def test_small_upload(self, client):
        resp = _batch(
            client,
            "/bucket/objects/batch",
            operation="upload",
            objects=[{"oid": "abc", "size": 5 * MiB}],
        )

        (obj,) = resp.json()["objects"]
        upload = obj["actions"]["upload"]
        assert upload["href"].endswith("?method=PUT&expires=3600")
        assert upload["header"] == {"Content-Type": "application/octet-stream"}
        assert "multipart" not in obj

    def test_multipart_upload(self, client):
        resp = _batch(
            client,
            "/bucket/objects/batch",
            operation="upload",
            objects=[{"oid": "big", "size": 12 * MiB}],
        )

        assert resp.status_code == 200
        (obj,) = resp.json()["objects"]
        assert obj["multipart"] == {
            "partSize": 5 * MiB,
            "partCount": 3,
            "uploadId": "fake-upload-1",
        }
        parts = obj["actions"]["upload"]
        assert [part["partNumber"] for part in parts] == [1, 2, 3]
        for part in parts:
            assert part["header"] == {"Content-Type": "application/octet-stream"}
            assert part["expires_in"] == 3600
        verify = obj["actions"]["verify"]
        assert verify["href"].endswith("?uploadId=fake-upload-1")
        assert verify["header"] == {"Content-Type": "application/xml"}

    def test_object_failure_keeps_status_200(self, client, fake_signer):
        fake_signer.failures["bad"] = SigningFailure("Failed to generate presigned URL")

        resp = _batch(
            client,
            "/bucket/objects/batch",
            objects=[{"oid": "good", "size": 1}, {"oid": "bad", "size": 2}],
        )

        assert resp.status_code == 200
        good, bad = resp.json()["objects"]
        assert "download" in good["actions"]
        assert bad == {
            "oid": "bad",
            "size": 2,
            "error": {"code": 500, "message": "Failed to generate presigned URL"},
        }

    def test_empty_batch(self, client):
        resp = _batch(client, "/bucket/objects/batch", objects=[])
        assert resp.status_code == 200
        assert resp.json() == {"transfer": "basic", "objects": []}


class TestPathOverrides:
    def test_overrides_reach_the_signer(self, client, captured_credentials):
        resp = _batch(
            client,
            "/region=eu-west-1/endpoint=minio.local%3A9000/sessionToken=tok"
            "/addressing_style=path/expiry=600/bucket/objects/batch",
        )

        assert resp.status_code == 200
        (obj,) = resp.json()["objects"]
        assert obj["actions"]["download"]["expires_in"] == 600
        (credentials,) = captured_credentials
        assert credentials.region == "eu-west-1"
        assert credentials.endpoint_url == "https://minio.local:9000"
        assert credentials.session_token == "tok"
        assert credentials.addressing_style == "path"

    def test_expiry_from_environment(self, client, monkeypatch):
        monkeypatch.setenv("PRESIGN_EXPIRES_SECONDS", "120")
        get_settings.cache_clear()  # type: ignore[attr-defined]

        resp = _batch(client, "/bucket/objects/batch")

        (obj,) = resp.json()["objects"]
        assert obj["actions"]["download"]["expires_in"] == 120

    def test_invalid_expiry(self, client):
        resp = _batch(client, "/expiry=0/bucket/objects/batch")
        assert resp.status_code == 400

    def test_leading_host_segment_is_the_endpoint(
        self, client, fake_signer, captured_credentials
    ):
        resp = _batch(
            client, "/acct.r2.cloudflarestorage.com/mybucket/repo/objects/batch"
        )

        assert resp.status_code == 200
        (credentials,) = captured_credentials
        assert credentials.endpoint_url == "https://acct.r2.cloudflarestorage.com"
        assert credentials.addressing_style == "path"
        (call,) = fake_signer.calls_named("presign_download")
        assert call["bucket"] == "mybucket"
        assert call["object_key"] == "repo/abc"

    def test_dotted_segment_is_bucket_with_configured_endpoint(
        self, client, fake_signer, captured_credentials, monkeypatch
    ):
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        get_settings.cache_clear()  # type: ignore[attr-defined]

        resp = _batch(client, "/my.bucket/objects/batch")

        assert resp.status_code == 200
        (credentials,) = captured_credentials
        assert credentials.endpoint_url is None
        (call,) = fake_signer.calls_named("presign_download")
        assert call["bucket"] == "my.bucket"

    def test_host_without_bucket_is_not_found(self, client):
        resp = _batch(client, "/acct.r2.cloudflarestorage.com/objects/batch")
        assert resp.status_code == 404


class TestUnexpectedErrors:
    def _client_with_factory(self, factory):
        app = create_app()
        app.dependency_overrides[get_signer_factory] = lambda: factory
        return TestClient(app, raise_server_exceptions=False)

    def test_internal_error(self):
        def factory(credentials):
            raise RuntimeError("boom")

        resp = _batch(self._client_with_factory(factory), "/bucket/objects/batch")

        assert resp.status_code == 500
        assert resp.json()["message"] == "Internal server error"
        assert "boom" not in resp.text

    def test_network_error(self):
        def factory(credentials):
            raise EndpointConnectionError(endpoint_url="https://s3.example")

        resp = _batch(self._client_with_factory(factory), "/bucket/objects/batch")

        assert resp.status_code == 503
        assert resp.json()["error_code"] == "service_unavailable"


def test_download_with_real_signer():
    client = TestClient(create_app())

    resp = _batch(
        client,
        "/endpoint=http%3A%2F%2Flocalhost%3A9000/addressing_style=path"
        "/my-bucket/repo/objects/batch",
    )

    assert resp.status_code == 200
    (obj,) = resp.json()["objects"]
    href = obj["actions"]["download"]["href"]
    parts = urlsplit(href)
    assert parts.netloc == "localhost:9000"
    assert parts.path == "/my-bucket/repo/abc"
    query = parse_qs(parts.query)
    assert query["X-Amz-Expires"] == ["3600"]
    assert "X-Amz-Signature" in query


def test_storage_host_in_path_with_real_signer():
    client = TestClient(create_app())

    resp = _batch(client, "/acct.r2.cloudflarestorage.com/mybucket/objects/batch")

    assert resp.status_code == 200
    (obj,) = resp.json()["objects"]
    parts = urlsplit(obj["actions"]["download"]["href"])
    assert parts.scheme == "https"
    assert parts.netloc == "acct.r2.cloudflarestorage.com"
    assert parts.path == "/mybucket/abc"


def test_signer_is_built_off_the_event_loop(fake_signer):
    built_on_loop = []

    def factory(credentials):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            built_on_loop.append(False)
        else:
            built_on_loop.append(True)
        return fake_signer

    app = create_app()
    app.dependency_overrides[get_signer_factory] = lambda: factory
    resp = _batch(TestClient(app), "/bucket/objects/batch")

    assert resp.status_code == 200
    assert built_on_loop == [False]
