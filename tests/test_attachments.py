from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException
from jose import jwt

from app.main import app
from app.services import storage as storage_module
from app.services.storage import LocalAttachmentStorage, S3AttachmentStorage, normalize_object_path

pytestmark = pytest.mark.anyio


@pytest.fixture
def local_storage(tmp_path):
    (tmp_path / "web-101").mkdir()
    (tmp_path / "web-101" / "source.zip").write_bytes(b"PK\x03\x04payload")
    return LocalAttachmentStorage(str(tmp_path), secret="test-secret", ttl_seconds=60)


def _token_from(url: str) -> str:
    return parse_qs(urlsplit(url).query)["token"][0]


@pytest.mark.parametrize("path", ["", "   ", "../etc/passwd", "web-101/../../secret", "a\\b"])
def test_bad_paths_are_rejected(path):
    with pytest.raises(HTTPException) as excinfo:
        normalize_object_path(path)
    assert excinfo.value.status_code == 400


def test_leading_slash_is_ignored():
    assert normalize_object_path("/web-101/source.zip") == "web-101/source.zip"


async def test_local_signed_url_roundtrip(local_storage):
    url = await local_storage.signed_url("web-101/source.zip", base_url="https://ctf.example.com/")
    assert url.startswith("https://ctf.example.com/attachments/download?token=")

    path = local_storage.path_from_token(_token_from(url))
    assert path.name == "source.zip"

    chunks = [chunk async for chunk in await local_storage.open(path)]
    assert b"".join(chunks) == b"PK\x03\x04payload"


async def test_local_signing_missing_file_is_not_found(local_storage):
    with pytest.raises(HTTPException) as excinfo:
        await local_storage.signed_url("web-101/missing.zip")
    assert excinfo.value.status_code == 404


def test_expired_token_is_forbidden(local_storage):
    token = jwt.encode(
        {
            "path": "web-101/source.zip",
            "scope": "attachment",
            "exp": datetime.now(timezone.utc) - timedelta(seconds=1),
        },
        "test-secret",
        algorithm="HS256",
    )
    with pytest.raises(HTTPException) as excinfo:
        local_storage.path_from_token(token)
    assert excinfo.value.status_code == 403


@pytest.mark.parametrize(
    "claims, secret",
    [
        ({"path": "web-101/source.zip", "scope": "attachment"}, "wrong-secret"),
        ({"path": "web-101/source.zip", "scope": "other"}, "test-secret"),
        ({"scope": "attachment"}, "test-secret"),
    ],
)
def test_tampered_tokens_are_forbidden(local_storage, claims, secret):
    token = jwt.encode(claims, secret, algorithm="HS256")
    with pytest.raises(HTTPException) as excinfo:
        local_storage.path_from_token(token)
    assert excinfo.value.status_code == 403


class _FakeS3:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.calls.append((operation, Params, ExpiresIn))
        if self.error:
            raise self.error
        return f"https://s3.example.com/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


async def test_s3_presigns_get_object():
    client = _FakeS3()
    s3 = S3AttachmentStorage(client, bucket="challenge-files", ttl_seconds=120)

    url = await s3.signed_url("/web-101/source.zip")

    assert url == "https://s3.example.com/challenge-files/web-101/source.zip?X-Amz-Expires=120"
    assert client.calls == [("get_object", {"Bucket": "challenge-files", "Key": "web-101/source.zip"}, 120)]


async def test_s3_errors_become_bad_request():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "GetObject")
    s3 = S3AttachmentStorage(_FakeS3(error), bucket="challenge-files")
    with pytest.raises(HTTPException) as excinfo:
        await s3.signed_url("web-101/source.zip")
    assert excinfo.value.status_code == 400


def test_s3_requires_bucket(monkeypatch):
    monkeypatch.delenv("ATTACHMENT_S3_BUCKET", raising=False)
    with pytest.raises(RuntimeError):
        S3AttachmentStorage(_FakeS3())


async def test_sign_and_download_over_http(local_storage, monkeypatch):
    monkeypatch.setattr(storage_module, "_storage", local_storage)
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://test")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        signed = await client.post("/attachments/sign-url", json={"path": "web-101/source.zip"})
        assert signed.status_code == 200
        assert "no-store" in signed.headers["cache-control"]

        url = signed.json()["url"]
        download = await client.get(url)
        assert download.status_code == 200
        assert download.content == b"PK\x03\x04payload"
        assert 'filename="source.zip"' in download.headers["content-disposition"]

        bad = await client.get("/attachments/download", params={"token": "garbage"})
        assert bad.status_code == 403
