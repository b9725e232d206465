"""
Tests for the resolution layer: cache hits, signed-URL fallbacks, background
warming and release lookups.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import make_album, make_release, signed
from media_cache.catalog.object_store import AccessUrlIssuer
from media_cache.catalog.scanner import CatalogScanner
from media_cache.core.resolver import AssetResolver
from media_cache.core.tasks import TaskRunner
from media_cache.exceptions import IssuerError, ResolutionError, StorageUnavailableError
from media_cache.models.catalog import ReleaseSlot
from media_cache.storage.handles import HANDLE_URL_PREFIX


@pytest.fixture
def issuer():
    mock = AsyncMock(spec=AccessUrlIssuer)
    mock.issue_access_url.side_effect = lambda key: signed(key)
    return mock


@pytest.fixture
def scanner():
    mock = AsyncMock(spec=CatalogScanner)
    mock.find_release.return_value = None
    return mock


@pytest.fixture
def resolver(cache, issuer, scanner):
    return AssetResolver(cache, issuer, scanner, TaskRunner())


@pytest.mark.asyncio
class TestAlbumResolution:
    """Tests for song and cover URL resolution."""

    async def test_miss_returns_signed_url_without_caching(self, resolver, cache):
        album = make_album()
        song = album.songs[0]

        url = await resolver.resolve_song_url(song.key, album.id)

        assert url == signed(song.key)
        assert await cache.is_cached(album.id) is False

    async def test_hit_returns_local_handle_without_issuing(self, resolver, issuer):
        album = make_album()
        await resolver.ensure_album_cached(album)
        issued = issuer.issue_access_url.await_count

        url = await resolver.resolve_song_url(album.songs[0].key, album.id)

        assert url.startswith(HANDLE_URL_PREFIX)
        assert issuer.issue_access_url.await_count == issued

    async def test_issuer_failure_raises_resolution_error(self, resolver, issuer):
        issuer.issue_access_url.side_effect = IssuerError("access denied")
        album = make_album()

        with pytest.raises(ResolutionError):
            await resolver.resolve_song_url(album.songs[0].key, album.id)
        with pytest.raises(ResolutionError):
            await resolver.resolve_album_cover_url(album)

    async def test_cover_miss_is_cached_in_background(self, resolver, cache):
        album = make_album()

        first = await resolver.resolve_album_cover_url(album)
        await resolver.tasks.drain()
        second = await resolver.resolve_album_cover_url(album)

        assert first == signed(album.cover_key)
        assert second.startswith(HANDLE_URL_PREFIX)
        # A cached cover alone does not make the album available offline
        assert await cache.is_cached(album.id) is False


@pytest.mark.asyncio
class TestEnsureAlbumCached:
    """Tests for whole-album warming."""

    async def test_is_idempotent(self, resolver, issuer, fetcher):
        album = make_album(n_songs=2)

        await resolver.ensure_album_cached(album)
        issued, fetched = issuer.issue_access_url.await_count, fetcher.fetch.await_count
        await resolver.ensure_album_cached(album)

        assert issued == 3
        assert issuer.issue_access_url.await_count == issued
        assert fetcher.fetch.await_count == fetched

    async def test_errors_are_logged_not_raised(self, resolver, issuer, cache, caplog):
        issuer.issue_access_url.side_effect = IssuerError("expired credentials")
        album = make_album()

        await resolver.ensure_album_cached(album)

        assert await cache.is_cached(album.id) is False
        assert "expired credentials" in caplog.text

    async def test_warm_album_runs_in_background(self, resolver, cache):
        album = make_album()

        task = resolver.warm_album(album)
        await task

        assert await cache.is_cached(album.id) is True
        assert len(resolver.tasks) == 0


@pytest.mark.asyncio
class TestReleases:
    """Tests for the latest and upcoming release lookups."""

    async def test_missing_release_is_none(self, resolver, scanner):
        assert await resolver.get_latest_release() is None
        scanner.find_release.assert_awaited_once_with(ReleaseSlot.LATEST)

    async def test_listing_failure_is_none(self, resolver, scanner):
        scanner.find_release.side_effect = StorageUnavailableError("bucket gone")
        assert await resolver.get_upcoming_release() is None

    async def test_issuer_failure_is_none(self, resolver, scanner, issuer):
        scanner.find_release.return_value = make_release()
        issuer.issue_access_url.side_effect = IssuerError("denied")
        assert await resolver.get_latest_release() is None

    async def test_release_is_returned_and_cached(self, resolver, scanner, cache):
        release = make_release()
        scanner.find_release.return_value = release

        assert await resolver.get_latest_release() == release
        await resolver.tasks.drain()

        assert await cache.is_cached(release.id) is True
        cover = await resolver.resolve_release_cover_url(release)
        audio = await resolver.resolve_release_audio_url(release)
        assert cover.startswith(HANDLE_URL_PREFIX)
        assert audio.startswith(HANDLE_URL_PREFIX)

    async def test_release_without_preview_issues_only_cover(
        self, resolver, scanner, issuer
    ):
        release = make_release(release_id="upcoming-release", key="")
        scanner.find_release.return_value = release

        assert await resolver.get_upcoming_release() == release
        await resolver.tasks.drain()

        issuer.issue_access_url.assert_awaited_once_with(release.cover_key)
        assert await resolver.resolve_release_audio_url(release) is None

    async def test_uncached_release_cover_falls_back_to_signed_url(self, resolver):
        release = make_release()
        assert await resolver.resolve_release_cover_url(release) == signed(
            release.cover_key
        )
