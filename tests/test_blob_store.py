"""
Tests for the binary region: atomic writes and orphan removal.
"""

import asyncio
import os
import time

import pytest

from conftest import signed
from media_cache.storage.blob_store import BlobStore


@pytest.fixture
def blobs(tmp_path):
    store = BlobStore(tmp_path / "audio-files")
    store.open()
    return store


@pytest.mark.asyncio
class TestBlobStore:
    async def test_concurrent_puts_of_one_url_do_not_collide(self, blobs):
        url = signed("albums/night-drive/cover.jpg")
        bodies = [f"version {i}".encode() for i in range(10)]

        await asyncio.gather(*(blobs.put(url, body) for body in bodies))

        assert await blobs.get(url) in bodies
        assert list(blobs.root.glob(f"*{BlobStore.PART_SUFFIX}")) == []

    async def test_failed_write_leaves_no_temporary_file(self, blobs, monkeypatch):
        async def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("aiofiles.os.replace", broken_replace)

        with pytest.raises(OSError):
            await blobs.put(signed("albums/a/1.mp3"), b"data")

        assert list(blobs.root.iterdir()) == []

    async def test_stale_temporary_files_are_orphans(self, blobs):
        stale = blobs.root / f"abc.123{BlobStore.PART_SUFFIX}"
        stale.write_bytes(b"half")
        two_hours_ago = time.time() - 2 * 3600
        os.utime(stale, (two_hours_ago, two_hours_ago))

        assert await blobs.remove_orphans(set(), min_age_seconds=3600) == 1
        assert not stale.exists()
