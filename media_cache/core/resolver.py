"""
Turns catalog entities into playable URLs: a local handle when the asset is
cached, otherwise a freshly signed URL, warming the cache along the way.
"""

import asyncio
import logging

from rich.markup import escape

from media_cache.catalog.object_store import AccessUrlIssuer
from media_cache.catalog.scanner import CatalogScanner
from media_cache.exceptions import IssuerError, MediaCacheError, ResolutionError
from media_cache.models.catalog import Album, Release, ReleaseSlot
from media_cache.storage.asset_cache import AssetCache

from .tasks import TaskRunner

log = logging.getLogger(__name__)


class AssetResolver:
    """Mediates between "give me a playable URL" and "cache it for next time"."""

    def __init__(
        self,
        cache: AssetCache,
        issuer: AccessUrlIssuer,
        scanner: CatalogScanner,
        tasks: TaskRunner | None = None,
    ):
        self.cache = cache
        self.issuer = issuer
        self.scanner = scanner
        self.tasks = tasks if tasks is not None else TaskRunner()

    async def _issue(self, key: str) -> str:
        try:
            return await self.issuer.issue_access_url(key)
        except IssuerError as e:
            raise ResolutionError(f"Could not obtain an access URL for '{key}': {e}") from e

    async def resolve_song_url(self, song_key: str, album_id: str) -> str:
        """
        Returns a playable URL for one song. A miss is not cached here; whole
        albums are cached through `ensure_album_cached`.

        Raises:
            ResolutionError: If the song is not cached and no URL can be issued.
        """
        handle = await self.cache.get_song_url(album_id, song_key)
        if handle is not None:
            log.debug(f"Using cached audio for '{song_key}'.")
            return handle.url
        return await self._issue(song_key)

    async def resolve_album_cover_url(self, album: Album) -> str:
        """
        Returns a displayable URL for an album cover, caching the cover in the
        background on a miss.

        Raises:
            ResolutionError: If the cover is not cached and no URL can be issued.
        """
        handle = await self.cache.get_cover_url(album.id)
        if handle is not None:
            return handle.url

        url = await self._issue(album.cover_key)
        self.tasks.submit(
            self.cache.cache_cover(album, url), name=f"cache-cover:{album.id}"
        )
        return url

    async def ensure_album_cached(self, album: Album) -> None:
        """Caches a whole album unless it already is. Errors are only logged."""
        try:
            if await self.cache.is_cached(album.id):
                log.debug(f"Album '{album.id}' is already cached.")
                return

            cover_url, *urls = await asyncio.gather(
                self.issuer.issue_access_url(album.cover_key),
                *(self.issuer.issue_access_url(song.key) for song in album.songs),
            )
            song_urls = {song.key: url for song, url in zip(album.songs, urls)}
            await self.cache.cache_album(album, cover_url, song_urls)
        except Exception as e:
            log.error(f"Error caching album '{escape(album.title)}': {e}")

    def warm_album(self, album: Album) -> asyncio.Task:
        """Starts `ensure_album_cached` in the background and returns its task."""
        return self.tasks.submit(
            self.ensure_album_cached(album), name=f"warm-album:{album.id}"
        )

    async def _get_release(self, slot: ReleaseSlot) -> Release | None:
        try:
            release = await self.scanner.find_release(slot)
            if release is None:
                return None
            cover_url = await self.issuer.issue_access_url(release.cover_key)
            audio_url = (
                await self.issuer.issue_access_url(release.key)
                if release.has_preview
                else None
            )
        except MediaCacheError as e:
            log.error(f"Error getting {slot.value} release: {e}")
            return None

        self.tasks.submit(
            self.cache.cache_release(release, cover_url, audio_url),
            name=f"cache-release:{release.id}",
        )
        return release

    async def get_latest_release(self) -> Release | None:
        """Builds the release under `latest/` and caches it in the background."""
        return await self._get_release(ReleaseSlot.LATEST)

    async def get_upcoming_release(self) -> Release | None:
        """Builds the release under `upcoming/` and caches it in the background."""
        return await self._get_release(ReleaseSlot.UPCOMING)

    async def resolve_release_cover_url(self, release: Release) -> str:
        """
        Raises:
            ResolutionError: If the cover is not cached and no URL can be issued.
        """
        handle = await self.cache.get_release_cover_url(release.id)
        if handle is not None:
            return handle.url
        return await self._issue(release.cover_key)

    async def resolve_release_audio_url(self, release: Release) -> str | None:
        """
        Returns None for a release without an audio preview.

        Raises:
            ResolutionError: If the preview is not cached and no URL can be issued.
        """
        if not release.has_preview:
            return None
        handle = await self.cache.get_release_audio_url(release.id)
        if handle is not None:
            return handle.url
        return await self._issue(release.key)
