"""Local volume storage for uploaded files.

Files live under ``<base_path>/uploads`` and are addressed by a relative path
(``uploads/<timestamp>-<sanitized-name>``) that callers persist themselves.
On Railway the base path is the mounted volume.
"""
from __future__ import annotations

import logging
import os
import re
import time
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

LOG = logging.getLogger(__name__)

STORAGE_PATH = Path(os.getenv("STORAGE_PATH", "/app/storage"))
DELETE_ON_MISSING = os.getenv("STORAGE_DELETE_ON_MISSING", "ignore")
UPLOADS_FOLDER = "uploads"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "tiff": "image/tiff",
    "tif": "image/tiff",
}

ON_MISSING_POLICIES = ("ignore", "error")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StorageError(RuntimeError):
    """Base class for failures raised by the file store."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class StorageInitError(StorageError):
    """The uploads directory could not be created."""


class UploadError(StorageError):
    pass


class NotFoundError(StorageError):
    """The relative path does not point at an accessible file."""


class ReadError(StorageError):
    pass


class DeleteError(StorageError):
    """Raised by delete only when the store uses the ``error`` policy."""


class RenameError(StorageError):
    pass


def sanitize_file_name(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def get_content_type(file_name: str) -> str:
    """Map the file name's extension to a MIME type."""
    _, dot, ext = file_name.lower().rpartition(".")
    if not dot:
        return DEFAULT_CONTENT_TYPE
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


class LocalFileStore:
    """Flat file store rooted at ``base_path``.

    ``on_missing`` selects the delete failure policy: ``ignore`` logs and
    swallows every failure, ``error`` raises.
    """

    def __init__(self, base_path: Path | str, on_missing: str = "ignore") -> None:
        if on_missing not in ON_MISSING_POLICIES:
            raise ValueError(f"on_missing must be one of {ON_MISSING_POLICIES}, got {on_missing!r}")
        self.base_path = Path(base_path).expanduser().resolve()
        self.uploads_path = self.base_path / UPLOADS_FOLDER
        self.on_missing = on_missing
        self._last_stamp = 0
        self._stamp_lock = Lock()

    def __repr__(self) -> str:
        return f"LocalFileStore(base_path={str(self.base_path)!r}, on_missing={self.on_missing!r})"

    async def initialize_storage(self) -> None:
        try:
            await aiofiles.os.makedirs(self.uploads_path, exist_ok=True)
        except OSError as exc:
            LOG.error("Error initializing storage directory %s: %s", self.uploads_path, exc)
            raise StorageInitError(
                "Storage initialization failed.", {"path": str(self.uploads_path), "error": str(exc)}
            ) from exc
        LOG.info("Storage directory initialized: %s", self.uploads_path)

    async def upload_file(self, content: bytes, file_name: str) -> str:
        """Write ``content`` under a new unique name and return its relative path."""
        if not file_name or not file_name.strip():
            raise UploadError("File name must not be empty.")
        try:
            await self.initialize_storage()
        except StorageInitError as exc:
            raise UploadError("File upload failed.", exc.context) from exc

        relative_path = file_name
        try:
            target = self._reserve_path(file_name)
            relative_path = self._relative(target)
            async with aiofiles.open(target, "xb") as handle:
                await handle.write(content)
        except OSError as exc:
            LOG.error("Error uploading file %s: %s", relative_path, exc)
            raise UploadError("File upload failed.", {"path": relative_path, "error": str(exc)}) from exc

        LOG.info("File uploaded: %s (%d bytes)", relative_path, len(content))
        return relative_path

    async def get_file_path(self, relative_path: str) -> Path:
        """Resolve ``relative_path`` and confirm the file exists."""
        try:
            full_path = self.resolve(relative_path)
        except ValueError as exc:
            LOG.error("Rejected path outside storage: %s", relative_path)
            raise NotFoundError("File not found.", {"path": relative_path}) from exc
        if not await aiofiles.os.path.exists(full_path):
            LOG.error("Error accessing file: %s", full_path)
            raise NotFoundError("File not found.", {"path": relative_path})
        return full_path

    async def read_file(self, relative_path: str) -> bytes:
        full_path = await self.get_file_path(relative_path)
        try:
            async with aiofiles.open(full_path, "rb") as handle:
                content = await handle.read()
        except OSError as exc:
            LOG.error("Error reading file %s: %s", relative_path, exc)
            raise ReadError("File read failed.", {"path": relative_path, "error": str(exc)}) from exc
        LOG.info("File read: %s", relative_path)
        return content

    async def delete_file(self, relative_path: str) -> None:
        try:
            full_path = self.resolve(relative_path)
            await aiofiles.os.remove(full_path)
        except (OSError, ValueError) as exc:
            if self.on_missing == "ignore":
                LOG.warning("File deletion failed for %s, continuing: %s", relative_path, exc)
                return
            LOG.error("Error deleting file %s: %s", relative_path, exc)
            context = {"path": relative_path, "error": str(exc)}
            if isinstance(exc, FileNotFoundError):
                raise NotFoundError("File not found.", context) from exc
            raise DeleteError("File deletion failed.", context) from exc
        LOG.info("File deleted: %s", relative_path)

    async def rename_file(self, old_relative_path: str, new_file_name: str) -> str:
        """Move a stored file to a fresh unique name and return the new relative path."""
        if not new_file_name or not new_file_name.strip():
            raise RenameError("New file name must not be empty.", {"path": old_relative_path})
        try:
            old_full_path = self.resolve(old_relative_path)
        except ValueError as exc:
            raise RenameError("File rename failed.", {"path": old_relative_path}) from exc

        new_relative_path = new_file_name
        try:
            target = self._reserve_path(new_file_name)
            new_relative_path = self._relative(target)
            await aiofiles.os.rename(old_full_path, target)
        except OSError as exc:
            LOG.error("Error renaming file %s: %s", old_relative_path, exc)
            raise RenameError(
                "File rename failed.",
                {"path": old_relative_path, "new_path": new_relative_path, "error": str(exc)},
            ) from exc

        LOG.info("File renamed: %s -> %s", old_relative_path, new_relative_path)
        return new_relative_path

    async def check_storage(self) -> bool:
        """Health probe. Creates the storage tree when the base path is missing."""
        if await aiofiles.os.path.isdir(self.base_path) and os.access(self.base_path, os.R_OK | os.X_OK):
            LOG.info("Storage accessible at: %s", self.base_path)
            return True

        LOG.warning("Storage not yet accessible at %s; creating it.", self.base_path)
        try:
            await self.initialize_storage()
        except StorageInitError as exc:
            LOG.error("Failed to initialize storage: %s", exc.context.get("error", exc))
            return False
        return True

    def describe(self) -> dict[str, object]:
        exists = self.base_path.exists()
        writable = os.access(self.base_path, os.W_OK) if exists else False
        return {
            "path": str(self.base_path),
            "exists": exists,
            "writable": writable,
        }

    def resolve(self, relative_path: str) -> Path:
        """Absolute location of ``relative_path``; ValueError when it escapes the base."""
        full_path = (self.base_path / relative_path).resolve()
        full_path.relative_to(self.base_path)
        return full_path

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.base_path).as_posix()

    def _next_stamp(self) -> int:
        now = time.time_ns() // 1_000_000
        with self._stamp_lock:
            stamp = max(now, self._last_stamp + 1)
            self._last_stamp = stamp
        return stamp

    def _reserve_path(self, file_name: str) -> Path:
        safe_name = sanitize_file_name(file_name)
        stamp = self._next_stamp()
        target = self.uploads_path / f"{stamp}-{safe_name}"
        while target.exists():
            stamp = self._next_stamp()
            target = self.uploads_path / f"{stamp}-{safe_name}"
        return target


def store_from_env() -> LocalFileStore:
    return LocalFileStore(STORAGE_PATH, on_missing=DELETE_ON_MISSING)


@lru_cache(maxsize=1)
def get_store() -> LocalFileStore:
    """Process-wide store used by the API."""
    return store_from_env()
