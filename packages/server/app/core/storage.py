"""
File storage for task attachments.

The API only needs "store this upload, give me a stable URL". LocalFileStorage
streams to disk in chunks and serves files back through a static mount; a
hosted provider can be dropped in by implementing FileStorage.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog
from fastapi import Request, UploadFile

from app.core.config import Settings
from app.core.errors import InternalError, ValidationError

log = structlog.get_logger()

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredFile:
    url: str
    name: str
    size: int


class FileStorage(Protocol):
    async def save(self, file: UploadFile) -> StoredFile: ...


class UploadTooLarge(ValidationError):
    default_message = "File too large"


class LocalFileStorage:
    def __init__(self, root: str | Path, url_prefix: str, max_bytes: int):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalFileStorage":
        return cls(settings.upload_dir, settings.upload_url_prefix, settings.max_upload_bytes)

    async def save(self, file: UploadFile) -> StoredFile:
        """Stream an upload to disk, enforcing the size limit chunk by chunk."""
        original = Path(file.filename or "").name
        if not original:
            raise ValidationError("File upload failed")

        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}{Path(original).suffix.lower()}"
        path = self.root / stored_name

        total = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = await file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise UploadTooLarge(
                            f"File too large. Maximum size: {self.max_bytes // (1024 * 1024)}MB"
                        )
                    out.write(chunk)
        except ValidationError:
            path.unlink(missing_ok=True)
            raise
        except OSError as exc:
            path.unlink(missing_ok=True)
            log.error("storage.write_failed", filename=original, error=str(exc))
            raise InternalError("File upload failed")

        log.info("storage.saved", filename=original, stored=stored_name, size=total)
        return StoredFile(url=f"{self.url_prefix}/{stored_name}", name=original, size=total)


def get_storage(request: Request) -> FileStorage:
    return request.app.state.storage
