from __future__ import annotations

import logging
import mimetypes
import os

from fastapi import APIRouter, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse

from app.routes.submissions import NO_STORE
from app.schemas import SignedUrl, SignUrlRequest
from app.services import get_attachment_storage
from app.services.storage import LocalAttachmentStorage

logger = logging.getLogger("attachments")

router = APIRouter(prefix="/attachments", tags=["Challenge Attachments"])


def _public_base_url(request: Request) -> str:
    base = os.getenv("PUBLIC_BASE_URL", "").strip()
    return base or str(request.base_url)


@router.post("/sign-url", response_model=SignedUrl)
async def sign_url(payload: SignUrlRequest, request: Request, response: Response):
    response.headers.update(NO_STORE)
    storage = get_attachment_storage()
    url = await storage.signed_url(payload.path, base_url=_public_base_url(request))
    logger.debug("Signed %s attachment URL for %s", storage.backend_name, payload.path)
    return SignedUrl(url=url)


@router.get("/download", name="download_attachment")
async def download_attachment(token: str = Query(..., min_length=1)):
    storage = get_attachment_storage()
    if not isinstance(storage, LocalAttachmentStorage):
        raise HTTPException(status_code=404, detail="Not found")

    try:
        path = storage.path_from_token(token)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Attachment missing from storage")

    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return StreamingResponse(
        await storage.open(path),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{path.name}"'},
    )
