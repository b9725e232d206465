"""
The binary region of the asset cache: fetched bodies stored on disk, keyed by
the signed URL they were fetched from.
"""

import asyncio
import hashlib
import logging
import shutil
import time
import uuid
from contextlib import suppress
from pathlib import Path

import aiofiles
import aiofiles.os

log = logging.getLogger(__name__)


class BlobStore:
    """
    Maps a source URL to a file holding its body.

    Keys are the full signed URLs, so a re-signed URL for the same object is a
    miss. Nothing here knows about entities or expiry; the metadata region
    decides which blobs are still referenced.
    """

    SUFFIX = ".bin"
    PART_SUFFIX = ".part"

    def __init__(self, root: Path):
        self.root = root

    def open(self) -> None:
        """Creates the region directory. Raises OSError if that is impossible."""
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, url: str) -> Path:
        """Generates a safe filename for a given source URL."""
        hashed_url = hashlib.md5(url.encode("utf-8")).hexdigest()  # noqa: S324
        return self.root / f"{hashed_url}{self.SUFFIX}"

    async def put(self, url: str, data: bytes) -> None:
        """
        Writes a body, replacing any previous one for the same URL atomically.
        Concurrent writers of one URL each use their own temporary file, and
        the last `replace` wins.
        """
        path = self.path_for(url)
        tmp_path = path.with_name(f"{path.stem}.{uuid.uuid4().hex}{self.PART_SUFFIX}")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, path)
        except BaseException:
            with suppress(OSError):
                tmp_path.unlink()
            raise

    async def get(self, url: str) -> bytes | None:
        path = self.path_for(url)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def contains(self, url: str) -> bool:
        return await aiofiles.os.path.isfile(self.path_for(url))

    async def delete(self, url: str) -> bool:
        try:
            await aiofiles.os.remove(self.path_for(url))
            return True
        except FileNotFoundError:
            return False

    def _remove_orphans_sync(self, keep: set[Path], min_age_seconds: float) -> int:
        now = time.time()
        removed = 0
        # Stale temporary files from interrupted writes count as orphans too
        candidates = [*self.root.glob(f"*{self.SUFFIX}"), *self.root.glob(f"*{self.PART_SUFFIX}")]
        for blob_file in candidates:
            if blob_file in keep:
                continue
            try:
                if now - blob_file.stat().st_mtime > min_age_seconds:
                    blob_file.unlink()
                    removed += 1
            except OSError as e:
                log.warning(f"Failed to remove orphaned blob {blob_file.name}: {e}")
        return removed

    async def remove_orphans(self, referenced_urls: set[str], min_age_seconds: float) -> int:
        """
        Deletes blobs not referenced by any metadata record. Blobs younger than
        `min_age_seconds` are kept, as their record may still be on its way.
        """
        keep = {self.path_for(url) for url in referenced_urls}
        return await asyncio.to_thread(self._remove_orphans_sync, keep, min_age_seconds)

    def _disk_usage_sync(self) -> int:
        total = 0
        for blob_file in self.root.glob(f"*{self.SUFFIX}"):
            try:
                total += blob_file.stat().st_size
            except OSError:
                continue
        return total

    async def disk_usage(self) -> int:
        return await asyncio.to_thread(self._disk_usage_sync)

    def destroy(self) -> None:
        """Removes the whole region from disk."""
        if self.root.exists():
            shutil.rmtree(self.root)
