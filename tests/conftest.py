"""
Shared fixtures: a controllable clock, a fake fetcher and a ready asset cache
rooted in a temporary directory.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from media_cache.exceptions import FetchError
from media_cache.media.fetcher import AssetFetcher
from media_cache.models.catalog import Album, Release, Song
from media_cache.storage.asset_cache import AssetCache

START_TIME = 1_700_000_000.0
DAY = 86400


class FakeClock:
    """Stands in for `time.time`; tests move it forward explicitly."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def signed(key: str, sig: str = "1") -> str:
    return f"https://bucket.s3.amazonaws.com/{key}?X-Amz-Signature={sig}"


def make_album(album_id: str = "night-drive", n_songs: int = 3) -> Album:
    album = Album(
        id=album_id,
        title=album_id.replace("-", " "),
        cover_key=f"albums/{album_id}/cover.jpg",
    )
    for i in range(1, n_songs + 1):
        album.songs.append(
            Song(
                id=f"{album_id}-track-{i}",
                title=f"track {i}",
                key=f"albums/{album_id}/track-{i}.mp3",
                album_id=album_id,
                album_title=album.title,
            )
        )
    return album


def make_release(
    release_id: str = "latest-release",
    cover_key: str = "latest/Fortune-Cookies-2025-09-20.jpg",
    key: str = "latest/preview.mp3",
) -> Release:
    return Release(
        id=release_id,
        title="Fortune Cookies",
        cover_key=cover_key,
        release_date="2025-09-20",
        key=key,
    )


def album_urls(album: Album, sig: str = "1") -> tuple[str, dict[str, str]]:
    return signed(album.cover_key, sig), {s.key: signed(s.key, sig) for s in album.songs}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def failing_urls() -> set[str]:
    """URLs the fake fetcher answers with HTTP 403."""
    return set()


@pytest.fixture
def fetcher(failing_urls):
    def fake_fetch(url: str) -> bytes:
        if url in failing_urls:
            raise FetchError(url, "HTTP 403", status=403)
        return f"body of {url}".encode()

    mock = AsyncMock(spec=AssetFetcher)
    mock.fetch.side_effect = fake_fetch
    return mock


@pytest_asyncio.fixture
async def cache(tmp_path, fetcher, clock) -> AssetCache:
    store = AssetCache(tmp_path / "assets", fetcher, clock=clock)
    assert await store.init()
    return store
