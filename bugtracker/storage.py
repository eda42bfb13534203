# bugtracker/storage.py
import os
import logging
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from dotenv import load_dotenv
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from bugtracker.errors import ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
MAX_ATTACHMENTS_PER_REQUEST = int(os.getenv("MAX_ATTACHMENTS_PER_REQUEST", 5))
MAX_ATTACHMENT_BYTES = int(os.getenv("MAX_ATTACHMENT_BYTES", 10 * 1024 * 1024))
CHUNK_SIZE = 64 * 1024


class AttachmentStore:
    """Local-disk blob store for ticket attachments."""

    def __init__(self, upload_dir: str = UPLOAD_DIR, url_prefix: str = UPLOAD_URL_PREFIX,
                 max_bytes: int = MAX_ATTACHMENT_BYTES):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    async def save(self, upload: UploadFile) -> dict:
        """Copy an upload to disk in chunks off the event loop, enforcing max_bytes."""
        original = Path(upload.filename or "attachment").name
        stored_name = f"{uuid4().hex}-{original}"
        path = self.upload_dir / stored_name

        size = await run_in_threadpool(self._write, upload.file, path)
        if size is None:
            raise ValidationError(f"File '{original}' exceeds {self.max_bytes} bytes")

        return {
            "filename": original,
            "path": str(path),
            "mimetype": upload.content_type or "application/octet-stream",
            "size": size,
            "url": f"{self.url_prefix}/{stored_name}",
        }

    def _write(self, source: BinaryIO, path: Path) -> int | None:
        """Bytes written, or None when the source outgrew max_bytes (nothing is left on disk)."""
        source.seek(0)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        size = 0
        with path.open("wb") as target:
            while chunk := source.read(CHUNK_SIZE):
                size += len(chunk)
                if size > self.max_bytes:
                    break
                target.write(chunk)
        if size > self.max_bytes:
            path.unlink(missing_ok=True)
            return None
        return size

    def discard(self, path: str):
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove attachment blob %s", path, exc_info=True)

    def discard_all(self, attachments: list[dict]):
        for attachment in attachments:
            if attachment.get("path"):
                self.discard(attachment["path"])
