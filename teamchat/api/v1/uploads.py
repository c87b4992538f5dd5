# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from teamchat.api.v1.deps import get_runtime
from teamchat.domain.models import CamelModel
from teamchat.services.runtime import ChatRuntime
from teamchat.storage.blobs import StoredBlob, UnsupportedFileType, UploadTooLarge


logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


class UploadedFileOut(CamelModel):
    url: str
    original_name: str
    size: int
    mime_type: str
    filename: str


class UploadResponse(CamelModel):
    files: list[UploadedFileOut]


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post(
    "/uploads",
    response_model=UploadResponse,
    response_model_by_alias=True,
    operation_id="uploads_create",
)
async def upload_files(
    files: list[UploadFile] = File(...),
    runtime: ChatRuntime = Depends(get_runtime),
) -> UploadResponse:
    max_files = runtime.settings.uploads_max_files
    if not files:
        raise _bad_request("No files uploaded")
    if len(files) > max_files:
        raise _bad_request(f"At most {max_files} files per upload")

    stored: list[StoredBlob] = []
    try:
        for f in files:
            original_name = (f.filename or "").strip()
            mime_type = (f.content_type or "").strip().lower()
            if original_name == "":
                raise _bad_request("Uploaded file needs a filename")
            blob = await asyncio.to_thread(
                runtime.blobs.save, src=f.file, original_name=original_name, mime_type=mime_type
            )
            stored.append(blob)
    except UnsupportedFileType as exc:
        await _discard_all(runtime, stored)
        raise _bad_request("Unsupported file type") from exc
    except UploadTooLarge as exc:
        await _discard_all(runtime, stored)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large"
        ) from exc
    except HTTPException:
        await _discard_all(runtime, stored)
        raise
    finally:
        for f in files:
            await f.close()

    logger.info("files uploaded: count=%d bytes=%d", len(stored), sum(b.size for b in stored))
    return UploadResponse(
        files=[
            UploadedFileOut(
                url=b.url,
                original_name=b.original_name,
                size=b.size,
                mime_type=b.mime_type,
                filename=b.filename,
            )
            for b in stored
        ]
    )


async def _discard_all(runtime: ChatRuntime, blobs: list[StoredBlob]) -> None:
    for b in blobs:
        await asyncio.to_thread(runtime.blobs.discard, b)
