"""Per-request scratch files for uploads, outputs and archives."""

import logging
import shutil
import time
import uuid
from pathlib import Path, PurePath
from typing import List, Optional

from fastapi import UploadFile

from .config import Settings

logger = logging.getLogger("pandoc_service.storage")

CHUNK_SIZE = 1024 * 1024


class UploadError(Exception):
    """An upload could not be accepted."""


class UploadTooLargeError(UploadError):
    pass


def original_stem(filename: Optional[str]) -> str:
    """Base name of an upload without directories or extension."""
    name = PurePath((filename or "").replace("\\", "/")).name
    return PurePath(name).stem or "document"


class RequestScratch:
    """Tracks every temporary artifact one request creates.

    All paths embed a request token, so concurrent requests never share a
    file. :meth:`cleanup` removes everything that was handed out and is
    safe to call more than once.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.token = uuid.uuid4().hex
        self.timestamp = int(time.time() * 1000)
        self._paths: List[Path] = []
        self._media_dir: Optional[Path] = None
        self._counter = 0
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        settings.download_dir.mkdir(parents=True, exist_ok=True)

    def _next_id(self) -> str:
        self._counter += 1
        return f"{self.token[:12]}-{self._counter}"

    def _track(self, path: Path) -> Path:
        self._paths.append(path)
        return path

    async def save_upload(self, upload: UploadFile) -> Path:
        """Stream an upload to disk, enforcing the per-file size ceiling."""
        suffix = PurePath(upload.filename or "").suffix
        path = self._track(
            self.settings.upload_dir / f"{self.timestamp}-{self._next_id()}{suffix}"
        )
        written = 0
        with open(path, "wb") as fh:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.settings.max_file_size:
                    raise UploadTooLargeError(
                        f"File {upload.filename!r} exceeds the "
                        f"{self.settings.max_file_size // (1024 * 1024)} MB limit"
                    )
                fh.write(chunk)
        logger.debug("Saved upload %s (%d bytes)", path, written)
        return path

    def output_path(self, original_name: Optional[str], extension: str) -> Path:
        """Unique output location: original stem, batch timestamp, per-file token."""
        stem = original_stem(original_name)
        return self._track(
            self.settings.download_dir
            / f"{stem}-{self.timestamp}-{self._next_id()}{extension}"
        )

    def archive_path(self) -> Path:
        return self._track(
            self.settings.download_dir / f"converted-{self.timestamp}-{self.token[:12]}.zip"
        )

    @property
    def media_dir(self) -> Path:
        if self._media_dir is None:
            self._media_dir = self.settings.media_root / self.token
        return self._media_dir

    def cleanup(self) -> None:
        """Delete every tracked artifact; failures are logged, never raised."""
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Cleanup error for %s: %s", path, exc)
        self._paths.clear()
        if self._media_dir is not None and self._media_dir.exists():
            try:
                shutil.rmtree(self._media_dir)
            except OSError as exc:
                logger.error("Cleanup error for %s: %s", self._media_dir, exc)
