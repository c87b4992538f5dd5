from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO


# Extension and mime token allow-list share one vocabulary.
_ALLOWED_MIME_TOKENS = (
    "jpeg",
    "jpg",
    "png",
    "gif",
    "webp",
    "mp4",
    "mov",
    "quicktime",
    "avi",
    "msvideo",
    "mp3",
    "mpeg",
    "wav",
    "pdf",
    "msword",
    "wordprocessingml",
    "text/plain",
    "zip",
    "rar",
)


class UploadTooLarge(Exception):
    pass


class UnsupportedFileType(Exception):
    pass


@dataclass(frozen=True)
class StoredBlob:
    filename: str
    original_name: str
    size: int
    mime_type: str
    url: str


def _copy_limited(*, src: BinaryIO, dst: BinaryIO, max_bytes: int) -> int:
    if max_bytes <= 0:
        raise UploadTooLarge()

    written = 0
    while True:
        chunk = src.read(64 * 1024)
        if not chunk:
            return written
        if written + len(chunk) > max_bytes:
            raise UploadTooLarge()
        _ = dst.write(chunk)
        written += len(chunk)


class LocalBlobStore:
    """Stores uploads on local disk and hands back a public URL."""

    def __init__(
        self,
        *,
        root: Path,
        url_prefix: str,
        max_bytes: int,
        allowed_extensions: list[str],
    ) -> None:
        self.root: Path = root
        self.url_prefix: str = url_prefix.rstrip("/")
        self.max_bytes: int = max_bytes
        self.allowed_extensions: set[str] = {
            e.strip().lower() if e.strip().startswith(".") else f".{e.strip().lower()}"
            for e in allowed_extensions
            if e.strip()
        }

    def is_allowed(self, *, original_name: str, mime_type: str) -> bool:
        ext = Path(original_name).suffix.lower()
        if ext == "" or ext not in self.allowed_extensions:
            return False
        mt = mime_type.strip().lower()
        if mt == "":
            return False
        return any(token in mt for token in _ALLOWED_MIME_TOKENS)

    def save(self, *, src: BinaryIO, original_name: str, mime_type: str) -> StoredBlob:
        if not self.is_allowed(original_name=original_name, mime_type=mime_type):
            raise UnsupportedFileType(original_name)

        self.root.mkdir(parents=True, exist_ok=True)
        ext = Path(original_name).suffix.lower()
        filename = f"files-{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{ext}"
        target = self.root / filename
        tmp_path = self.root / f".upload-tmp-{uuid.uuid4().hex}"

        try:
            with tmp_path.open("wb") as f:
                size = _copy_limited(src=src, dst=f, max_bytes=self.max_bytes)
            os.replace(tmp_path, target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        return StoredBlob(
            filename=filename,
            original_name=original_name,
            size=size,
            mime_type=mime_type,
            url=f"{self.url_prefix}/{filename}",
        )

    def discard(self, blob: StoredBlob) -> None:
        (self.root / blob.filename).unlink(missing_ok=True)
