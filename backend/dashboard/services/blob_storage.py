"""
Dashboard Backend — Profile Picture Blob Storage
==================================================

What:  Writes profile picture bytes to disk and streams them back.
How:   Blobs live under <root>/users/<user id>/images/<uuid>. The filename is
       a random UUID with no extension; nothing about the content type is
       recorded. The caller persists the returned relative path.
Who:   Used by ProfileImageService. The root is injected at construction
       (see dashboard.dependencies), never read from the environment here.

Directory Structure:
    <root>/
    └── users/
        └── <user id>/
            └── images/
                ├── 0f8e4c1a-...   (current picture)
                └── 7b21d9e3-...   (replaced picture, still on disk)

Trust boundary:
    BlobStorage.read() only accepts a StoredImagePath. Those are produced by
    BlobStorage.write() or loaded from the user record, never built from a
    request parameter.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Union

import aiofiles

from dashboard.exceptions import InputError, NotFoundError, StorageError

logger = logging.getLogger(__name__)

# Characters allowed in a single path segment built from an identity
_SEGMENT_RE = re.compile(r"[A-Za-z0-9_-]+")

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredImagePath:
    """
    A storage-root-relative blob location that came from server-side state.

    Always POSIX-style (users/<id>/images/<uuid>) and never absolute.
    Wrap values with `from_record()` when loading them from the user table.
    """

    value: str

    def __post_init__(self):
        pure = PurePosixPath(self.value)
        if not self.value or pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Not a relative storage path: {self.value!r}")

    @classmethod
    def from_record(cls, value: str) -> "StoredImagePath":
        return cls(value)

    def __str__(self) -> str:
        return self.value


class BlobStorage:
    """
    Blob writer and reader bound to one storage root.

    Lifecycle of an upload:
        1. write() checks the bytes are non-empty
        2. Ensures users/<owner>/images/ exists (idempotent)
        3. Writes the bytes to a fresh UUID filename (exclusive create)
        4. Returns the relative path for the user record

    Lifecycle of a serve:
        1. read() resolves the stored path under the root
        2. Missing file → NotFoundError
        3. Returns an async iterator that opens the file lazily and
           closes it when iteration finishes or is cancelled
    """

    def __init__(self, root: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.root = Path(root).resolve()
        self.chunk_size = chunk_size
        logger.info("BlobStorage initialized with root=%s", self.root)

    # ── Writer ────────────────────────────────────────────────────────────

    def owner_directory(self, owner_id: str) -> PurePosixPath:
        """Relative directory holding an owner's blobs."""
        if not owner_id or not _SEGMENT_RE.fullmatch(owner_id):
            raise StorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"owner_id": owner_id, "reason": "owner id is not a safe path segment"},
            )
        return PurePosixPath("users", owner_id, "images")

    async def write(self, owner_id: str, content: bytes) -> StoredImagePath:
        """
        Store `content` as a new blob owned by `owner_id`.

        Returns:
            StoredImagePath relative to the storage root.

        Raises:
            InputError: `content` is empty.
            StorageError: directory creation or the write failed.
        """
        if not content:
            raise InputError(message="File missing", field="file")

        relative_dir = self.owner_directory(owner_id)
        relative_path = relative_dir / str(uuid.uuid4())
        absolute_path = self.root.joinpath(*relative_path.parts)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create directory %s: %s", absolute_path.parent, str(e))
            raise StorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path.parent), "os_error": str(e)},
            )

        try:
            # "xb": fail instead of overwriting an existing blob
            async with aiofiles.open(absolute_path, "xb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            if not isinstance(e, FileExistsError):
                await self._discard(absolute_path)
            raise StorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("Blob stored: %s (%d bytes)", relative_path, len(content))
        return StoredImagePath(relative_path.as_posix())

    # ── Reader ────────────────────────────────────────────────────────────

    def resolve(self, path: StoredImagePath) -> Path:
        """
        Absolute location of a stored path.

        Raises:
            TypeError: `path` is not a StoredImagePath.
            NotFoundError: the path resolves outside the storage root.
        """
        if not isinstance(path, StoredImagePath):
            raise TypeError(
                f"BlobStorage only resolves StoredImagePath values, got {type(path).__name__}"
            )
        full_path = self.root.joinpath(*PurePosixPath(path.value).parts).resolve()
        if not full_path.is_relative_to(self.root):
            logger.warning("Stored path escapes storage root: %s", path.value)
            raise NotFoundError(resource="file")
        return full_path

    async def read(self, path: StoredImagePath) -> AsyncIterator[bytes]:
        """
        Open a stored blob for streaming.

        Returns:
            Async iterator of byte chunks covering the whole file.

        Raises:
            NotFoundError: nothing exists at the resolved location.
        """
        full_path = self.resolve(path)
        if not full_path.is_file():
            raise NotFoundError(resource="file")
        return self._iter_file(full_path)

    async def _iter_file(self, full_path: Path) -> AsyncIterator[bytes]:
        # The handle lives only inside this generator: exhaustion, errors and
        # cancellation on client disconnect all leave through `async with`.
        async with aiofiles.open(full_path, "rb") as f:
            while True:
                chunk = await f.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

    # ── Cleanup ───────────────────────────────────────────────────────────

    async def remove(self, path: StoredImagePath) -> None:
        """
        Delete a stored blob, best-effort.

        Used when DELETE_REPLACED_IMAGES is enabled. Failures are logged and
        swallowed: the new picture is already committed at this point.
        """
        try:
            full_path = self.resolve(path)
        except NotFoundError:
            return
        await self._discard(full_path)

    async def _discard(self, full_path: Path) -> None:
        try:
            if full_path.exists():
                os.remove(full_path)
                logger.info("Removed blob: %s", full_path.name)
            else:
                logger.debug("Removal skipped, blob already gone: %s", full_path.name)
        except OSError as e:
            logger.warning("Failed to remove blob %s: %s", full_path, str(e))
