from __future__ import annotations

import asyncio
import os
import pathlib
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional
from urllib.parse import urlencode

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

DEFAULT_URL_TTL = 300  # seconds
_TOKEN_ALGORITHM = "HS256"
_TOKEN_SCOPE = "attachment"


def _url_ttl() -> int:
    try:
        return int(os.getenv("ATTACHMENT_URL_TTL", str(DEFAULT_URL_TTL)))
    except ValueError:
        return DEFAULT_URL_TTL


def normalize_object_path(path: str) -> str:
    """Validate an object path such as ``web-101/source.zip`` and return it cleaned."""

    cleaned = (path or "").strip().lstrip("/")
    if not cleaned:
        raise HTTPException(status_code=400, detail="Missing path")
    parts = pathlib.PurePosixPath(cleaned).parts
    if any(part in {"..", "."} for part in parts) or "\\" in cleaned:
        raise HTTPException(status_code=400, detail="Invalid attachment path")
    return "/".join(parts)


class AttachmentStorage:
    """Hands out short-lived download URLs for challenge attachments."""

    backend_name = "base"

    def __init__(self, ttl_seconds: Optional[int] = None) -> None:
        self.ttl = ttl_seconds if ttl_seconds is not None else _url_ttl()

    async def signed_url(self, path: str, *, base_url: str = "") -> str:  # pragma: no cover - interface only
        raise NotImplementedError


class LocalAttachmentStorage(AttachmentStorage):
    """Files on local disk, downloaded through ``GET /attachments/download?token=...``.

    The token is a JWT carrying the object path and an expiry, signed with
    ``ATTACHMENT_SIGNING_SECRET``.
    """

    backend_name = "local"

    def __init__(
        self,
        base_path: Optional[str] = None,
        *,
        secret: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(ttl_seconds)
        base_path = base_path or os.getenv("ATTACHMENT_LOCAL_PATH", "storage/attachments")
        self.base_path = pathlib.Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.secret = secret or os.getenv("ATTACHMENT_SIGNING_SECRET", "dev-attachment-secret-change-me")

    def resolve(self, path: str) -> pathlib.Path:
        candidate = (self.base_path / normalize_object_path(path)).resolve()
        if not candidate.is_relative_to(self.base_path):
            raise HTTPException(status_code=400, detail="Invalid attachment path")
        return candidate

    async def signed_url(self, path: str, *, base_url: str = "") -> str:
        relative = normalize_object_path(path)
        if not self.resolve(relative).is_file():
            raise HTTPException(status_code=404, detail="Attachment not found")

        expires = datetime.now(timezone.utc) + timedelta(seconds=self.ttl)
        token = jwt.encode(
            {"path": relative, "scope": _TOKEN_SCOPE, "exp": expires},
            self.secret,
            algorithm=_TOKEN_ALGORITHM,
        )
        return f"{base_url.rstrip('/')}/attachments/download?{urlencode({'token': token})}"

    def path_from_token(self, token: str) -> pathlib.Path:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[_TOKEN_ALGORITHM])
        except ExpiredSignatureError:
            raise HTTPException(status_code=403, detail="Download link expired")
        except JWTError:
            raise HTTPException(status_code=403, detail="Invalid download link")
        if claims.get("scope") != _TOKEN_SCOPE or not claims.get("path"):
            raise HTTPException(status_code=403, detail="Invalid download link")
        path = self.resolve(claims["path"])
        if not path.is_file():
            raise FileNotFoundError(path)
        return path

    async def open(self, path: pathlib.Path) -> AsyncIterator[bytes]:
        async def iterator():
            async with aiofiles.open(path, "rb") as handle:
                while True:
                    chunk = await handle.read(1024 * 256)
                    if not chunk:
                        break
                    yield chunk

        return iterator()


class S3AttachmentStorage(AttachmentStorage):
    backend_name = "s3"

    def __init__(self, client=None, *, bucket: Optional[str] = None, ttl_seconds: Optional[int] = None) -> None:
        super().__init__(ttl_seconds)
        bucket = bucket or os.getenv("ATTACHMENT_S3_BUCKET")
        if not bucket:
            raise RuntimeError("ATTACHMENT_S3_BUCKET must be set for S3 storage")
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            endpoint_url=os.getenv("ATTACHMENT_S3_ENDPOINT"),
            region_name=os.getenv("ATTACHMENT_S3_REGION"),
        )

    async def signed_url(self, path: str, *, base_url: str = "") -> str:
        key = normalize_object_path(path)
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.ttl,
            )
        except (BotoCoreError, ClientError) as exc:
            raise HTTPException(status_code=400, detail=f"Could not sign URL: {exc}") from exc


_storage: Optional[AttachmentStorage] = None


def get_attachment_storage() -> AttachmentStorage:
    global _storage
    if _storage is not None:
        return _storage

    backend = os.getenv("ATTACHMENT_STORAGE", "local").lower()
    if backend == "local":
        _storage = LocalAttachmentStorage()
    elif backend == "s3":
        _storage = S3AttachmentStorage()
    else:  # pragma: no cover - configuration error
        raise RuntimeError(f"Unsupported ATTACHMENT_STORAGE backend: {backend}")
    return _storage
