"""
A persistent, two-region asset cache with a time-to-live (TTL).

The binary region holds fetched bodies keyed by the signed URL they came from;
the metadata region holds one record per album or release describing which of
those bodies belong to it and when they expire. Cached bodies are handed out as
revocable local handles through a `HandleRegistry`.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator

from media_cache.exceptions import FetchError
from media_cache.media.fetcher import AssetFetcher
from media_cache.models.catalog import Album, Release
from media_cache.models.records import CachedAlbum, CachedRelease
from media_cache.models.stats import CacheStats
from media_cache.utils.formatting import redact_url

from .blob_store import BlobStore
from .handles import HandleKind, HandleRegistry, LocalHandle
from .metadata_store import MetadataStore, Record

log = logging.getLogger(__name__)


class AssetCache:
    """
    Offline cache for album and release assets.

    Create one instance at startup, call `init()`, and pass it to every
    consumer. If the cache directory cannot be opened the instance stays
    usable but every operation degrades to a miss or a no-op.
    """

    AUDIO_REGION = "audio-files"
    METADATA_REGION = "audio-metadata"

    DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60
    CLEANUP_INTERVAL_SECONDS = 3600
    ORPHAN_GRACE_SECONDS = 3600

    def __init__(
        self,
        cache_dir: Path,
        fetcher: AssetFetcher,
        handles: HandleRegistry | None = None,
        stats: CacheStats | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_concurrent_fetches: int = 4,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initializes the asset cache. Nothing touches the disk until `init()`.

        Args:
            cache_dir: Directory that will hold both cache regions.
            fetcher: Downloads bodies from signed URLs.
            handles: Registry of live local handles; a fresh one if omitted.
            stats: Receives hit/miss and fetch counts.
            ttl_seconds: Lifetime of a metadata record from the moment it is written.
            max_concurrent_fetches: Upper bound on simultaneous body downloads.
            clock: Returns the current epoch time in seconds.
        """
        self.cache_dir = cache_dir
        self.blobs = BlobStore(cache_dir / self.AUDIO_REGION)
        self.metadata = MetadataStore(cache_dir / self.METADATA_REGION)
        self.handles = handles if handles is not None else HandleRegistry()
        self.stats = stats if stats is not None else CacheStats()
        self.ttl_seconds = ttl_seconds

        self._fetcher = fetcher
        self._clock = clock
        self._fetch_semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._available = False
        self._caching_guards: dict[str, asyncio.Lock] = {}
        self._record_locks: dict[str, asyncio.Lock] = {}
        self._record_lock_users: dict[str, int] = {}
        self._cleanup_task: asyncio.Task | None = None

    @property
    def available(self) -> bool:
        """False until `init()` succeeds, and after it fails."""
        return self._available

    def _open_regions(self) -> None:
        self.blobs.open()
        self.metadata.open()

    def _destroy_regions(self) -> None:
        self.blobs.destroy()
        self.metadata.destroy()

    async def init(self) -> bool:
        """
        Prepares both regions on disk. Safe to call repeatedly.

        Returns:
            True if the cache is usable, False if it degraded to always-miss.
        """
        try:
            await asyncio.to_thread(self._open_regions)
        except OSError as e:
            log.warning(
                f"[yellow]Asset cache unavailable at '{self.cache_dir}': {e}. "
                "Continuing without offline caching.[/yellow]"
            )
            self._available = False
        else:
            self._available = True
        return self._available

    # Background cleanup

    async def start_background_cleanup(self) -> None:
        """Starts the periodic sweep of expired records and orphaned blobs."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            log.debug("Started cache background cleanup task.")

    async def _cleanup_loop(self) -> None:
        while True:
            try:
                await self.sweep_expired()
                await asyncio.sleep(self.CLEANUP_INTERVAL_SECONDS)
            except asyncio.CancelledError:
                log.debug("Cache cleanup task cancelled.")
                break
            except Exception as e:
                log.warning(f"Error in cache cleanup loop: {e}")
                await asyncio.sleep(self.CLEANUP_INTERVAL_SECONDS)

    async def stop_background_cleanup(self) -> None:
        """Stops the background cleanup task gracefully."""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._cleanup_task
            log.debug("Stopped cache background cleanup task.")

    async def sweep_expired(self) -> int:
        """
        Evicts every expired record and deletes blobs no record references.

        Returns:
            The number of records evicted.
        """
        if not self._available:
            return 0

        now = self._clock()
        evicted = 0
        referenced: set[str] = set()
        try:
            for record in await self.metadata.all():
                if not record.is_expired(now):
                    referenced.update(record.blob_urls())
                    continue
                async with self._record_lock(record.entity_id):
                    # May have been rewritten while waiting for the lock
                    current = await self.metadata.get(record.entity_id)
                    if current is not None and current.is_expired(now):
                        await self._evict(record.entity_id, current)
                        evicted += 1
                    elif current is not None:
                        referenced.update(current.blob_urls())
            orphans = await self.blobs.remove_orphans(
                referenced, self.ORPHAN_GRACE_SECONDS
            )
        except OSError as e:
            log.warning(f"Cache sweep failed: {e}")
            return evicted

        if evicted or orphans:
            log.debug(
                f"Cache sweep: evicted {evicted} record(s), "
                f"removed {orphans} orphaned blob(s)."
            )
        return evicted

    # Record helpers

    @asynccontextmanager
    async def _record_lock(self, entity_id: str) -> AsyncIterator[None]:
        """
        Serializes everything that reads or changes one entity's record, its
        blobs or its handles. The lock is dropped once nobody holds or awaits it.
        """
        lock = self._record_locks.setdefault(entity_id, asyncio.Lock())
        self._record_lock_users[entity_id] = self._record_lock_users.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            users = self._record_lock_users[entity_id] - 1
            if users:
                self._record_lock_users[entity_id] = users
            else:
                del self._record_lock_users[entity_id]
                del self._record_locks[entity_id]

    async def _load_live(self, entity_id: str) -> Record | None:
        """
        Returns the record for `entity_id`, evicting it first if it has expired.
        Callers hold `_record_lock(entity_id)`.
        """
        record = await self.metadata.get(entity_id)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            log.debug(f"Cache entry '{entity_id}' expired, evicting.")
            await self._evict(entity_id, record)
            return None
        return record

    async def _evict(self, entity_id: str, record: Record | None = None) -> bool:
        """Drops an entity's handles, blobs and record. Callers hold its record lock."""
        self.handles.revoke_entity(entity_id)
        if record is None:
            record = await self.metadata.get(entity_id)
        if record is None:
            return False
        for url in set(record.blob_urls()):
            await self.blobs.delete(url)
        await self.metadata.delete(entity_id)
        self.stats.evictions += 1
        return True

    async def _replace_record(self, record: Record, previous: Record | None) -> None:
        """
        Persists `record` over `previous`, deleting blobs and revoking handles
        that only the previous record referenced.
        """
        await self.metadata.put(record)
        if previous is None:
            return

        entity_id = record.entity_id
        superseded = set(previous.blob_urls()) - set(record.blob_urls())
        for url in superseded:
            await self.blobs.delete(url)

        if type(previous) is not type(record):
            self.handles.revoke_entity(entity_id)
            return

        if isinstance(record, CachedAlbum):
            if previous.cover_url != record.cover_url:
                self.handles.revoke(HandleKind.ALBUM_COVER, entity_id)
            for song_key, url in previous.audio_urls.items():
                if record.audio_urls.get(song_key) != url:
                    self.handles.revoke(HandleKind.ALBUM_SONG, entity_id, song_key)
        else:
            if previous.cover_url != record.cover_url:
                self.handles.revoke(HandleKind.RELEASE_COVER, entity_id)
            if previous.audio_url != record.audio_url:
                self.handles.revoke(HandleKind.RELEASE_AUDIO, entity_id)

    async def _fetch_into_region(self, url: str, label: str) -> bool:
        """
        Downloads one body and stores it in the binary region.

        Returns:
            True on success. Failures are logged and reported as False, so one
            bad item never aborts its siblings.
        """
        async with self._fetch_semaphore:
            try:
                data = await self._fetcher.fetch(url)
            except FetchError as e:
                log.warning(f"Failed to cache {label}: {e}")
                self.stats.record_fetch(None)
                return False
            except Exception as e:
                log.error(
                    f"Unexpected error caching {label} ({redact_url(url)}): {e}",
                    exc_info=True,
                )
                self.stats.record_fetch(None)
                return False

        try:
            await self.blobs.put(url, data)
        except OSError as e:
            log.error(f"Failed to store {label} ({redact_url(url)}): {e}")
            self.stats.record_fetch(None)
            return False

        self.stats.record_fetch(len(data))
        return True

    def _new_expiry(self) -> tuple[float, float]:
        now = self._clock()
        return now, now + self.ttl_seconds

    # Public API

    async def is_cached(self, entity_id: str) -> bool:
        """
        True only if a live record exists for `entity_id` and it owns at least
        one cached body (for albums: at least one song). An expired record is
        evicted as a side effect.
        """
        if not self._available:
            return False
        try:
            async with self._record_lock(entity_id):
                record = await self._load_live(entity_id)
        except OSError as e:
            log.error(f"Error checking if '{entity_id}' is cached: {e}")
            return False
        return record is not None and record.has_content()

    async def cache_album(
        self, album: Album, cover_url: str, song_urls: dict[str, str]
    ) -> None:
        """
        Fetches an album's cover and songs and records whatever succeeded.

        A second call for an album that is already being cached returns
        immediately. Individual fetch failures are logged and skipped; the
        resulting record may be partial.

        Args:
            album: The album snapshot to record.
            cover_url: Signed URL of the cover image.
            song_urls: Signed URL per song key. Songs without one are skipped.
        """
        if not self._available:
            return

        guard = self._caching_guards.get(album.id)
        if guard is not None and guard.locked():
            log.debug(f"Album '{album.id}' is already being cached, skipping.")
            return
        guard = self._caching_guards.setdefault(album.id, asyncio.Lock())

        try:
            async with guard:
                if await self.is_cached(album.id):
                    return

                songs = [song for song in album.songs if song_urls.get(song.key)]
                log.info(
                    f"Caching album [bold]{album.title}[/bold] "
                    f"({len(songs)} song(s))..."
                )
                cover_ok, *songs_ok = await asyncio.gather(
                    self._fetch_into_region(cover_url, f"cover of '{album.title}'"),
                    *(
                        self._fetch_into_region(song_urls[song.key], f"song '{song.title}'")
                        for song in songs
                    ),
                )

                audio_urls = {
                    song.key: song_urls[song.key]
                    for song, ok in zip(songs, songs_ok)
                    if ok
                }
                timestamp, expires_at = self._new_expiry()
                record = CachedAlbum(
                    album=album,
                    audio_urls=audio_urls,
                    cover_url=cover_url,
                    timestamp=timestamp,
                    expires_at=expires_at,
                )
                async with self._record_lock(album.id):
                    previous = await self.metadata.get(album.id)
                    await self._replace_record(record, previous)

                self.stats.entities_cached.add(album.id)
                log.info(
                    f"Album [bold]{album.title}[/bold] cached with "
                    f"{len(audio_urls)}/{len(album.songs)} songs"
                    f"{'' if cover_ok else ' (no cover)'}."
                )
        except OSError as e:
            log.error(f"Failed to cache album '{album.title}': {e}")
        finally:
            if not guard.locked():
                self._caching_guards.pop(album.id, None)

    async def cache_cover(self, album: Album, cover_url: str) -> bool:
        """
        Caches only an album's cover. Patches the cover of an existing record,
        or creates a minimal record without songs.

        Returns:
            True if the cover was fetched and recorded.
        """
        if not self._available:
            return False
        if not await self._fetch_into_region(cover_url, f"cover of '{album.title}'"):
            return False

        try:
            async with self._record_lock(album.id):
                existing = await self._load_live(album.id)
                if isinstance(existing, CachedAlbum):
                    record = existing.model_copy(update={"cover_url": cover_url})
                else:
                    timestamp, expires_at = self._new_expiry()
                    record = CachedAlbum(
                        album=album,
                        cover_url=cover_url,
                        timestamp=timestamp,
                        expires_at=expires_at,
                    )
                await self._replace_record(record, existing)
        except OSError as e:
            log.error(f"Failed to record cover for album '{album.title}': {e}")
            return False

        log.debug(f"Cached cover for album '{album.id}'.")
        return True

    async def cache_release(
        self, release: Release, cover_url: str, audio_url: str | None = None
    ) -> None:
        """
        Fetches a release's cover and optional audio preview and records them.

        A live record cached from the same objects is left untouched; a record
        for different objects is evicted before the new ones are fetched.
        """
        if not self._available:
            return

        audio_url = audio_url if audio_url and release.has_preview else None
        try:
            async with self._record_lock(release.id):
                existing = await self._load_live(release.id)
                if (
                    isinstance(existing, CachedRelease)
                    and existing.same_objects(release)
                    and (existing.audio_url or not audio_url)
                    and await self.blobs.contains(existing.cover_url)
                ):
                    log.debug(f"Release '{release.id}' is already cached, skipping.")
                    return
                if existing is not None:
                    await self._evict(release.id, existing)

            log.info(f"Caching release [bold]{release.title}[/bold]...")
            fetches = [self._fetch_into_region(cover_url, f"cover of '{release.title}'")]
            if audio_url:
                fetches.append(
                    self._fetch_into_region(audio_url, f"audio of '{release.title}'")
                )
            results = await asyncio.gather(*fetches)
            audio_ok = len(results) > 1 and results[1]

            timestamp, expires_at = self._new_expiry()
            record = CachedRelease(
                release=release,
                cover_url=cover_url,
                audio_url=audio_url if audio_ok else None,
                timestamp=timestamp,
                expires_at=expires_at,
            )
            async with self._record_lock(release.id):
                await self.metadata.put(record)
            self.stats.entities_cached.add(release.id)
        except OSError as e:
            log.error(f"Failed to cache release '{release.title}': {e}")

    async def _get_handle(
        self,
        kind: HandleKind,
        entity_id: str,
        record_type: type,
        select_url: Callable[[Record], str | None],
        sub_key: str = "",
    ) -> LocalHandle | None:
        if not self._available:
            return None
        # A clear or eviction must not slip in between reading the blob and
        # registering its handle.
        try:
            async with self._record_lock(entity_id):
                record = await self._load_live(entity_id)
                if not isinstance(record, record_type):
                    self.stats.record_lookup(False)
                    return None

                handle = self.handles.get(kind, entity_id, sub_key)
                if handle is not None:
                    self.stats.record_lookup(True)
                    return handle

                url = select_url(record)
                data = await self.blobs.get(url) if url else None
                if data is None:
                    self.stats.record_lookup(False)
                    return None
                self.stats.record_lookup(True)
                return self.handles.get_or_create(kind, entity_id, data, sub_key)
        except OSError as e:
            log.error(f"Failed to retrieve {kind.value} for '{entity_id}': {e}")
            return None

    async def get_cover_url(self, entity_id: str) -> LocalHandle | None:
        """Returns a handle onto the cached cover of an album, or None."""
        return await self._get_handle(
            HandleKind.ALBUM_COVER, entity_id, CachedAlbum, lambda r: r.cover_url
        )

    async def get_song_url(self, entity_id: str, song_key: str) -> LocalHandle | None:
        """Returns a handle onto a cached song of an album, or None."""
        return await self._get_handle(
            HandleKind.ALBUM_SONG,
            entity_id,
            CachedAlbum,
            lambda r: r.audio_urls.get(song_key),
            sub_key=song_key,
        )

    async def get_release_cover_url(self, entity_id: str) -> LocalHandle | None:
        """Returns a handle onto the cached cover of a release, or None."""
        return await self._get_handle(
            HandleKind.RELEASE_COVER, entity_id, CachedRelease, lambda r: r.cover_url
        )

    async def get_release_audio_url(self, entity_id: str) -> LocalHandle | None:
        """Returns a handle onto the cached audio preview of a release, or None."""
        return await self._get_handle(
            HandleKind.RELEASE_AUDIO, entity_id, CachedRelease, lambda r: r.audio_url
        )

    async def _clear(self, entity_id: str) -> None:
        self.handles.revoke_entity(entity_id)
        if not self._available:
            return
        try:
            async with self._record_lock(entity_id):
                removed = await self._evict(entity_id)
            if removed:
                log.info(f"Removed '{entity_id}' from the cache.")
        except OSError as e:
            log.error(f"Failed to clear '{entity_id}' from cache: {e}")

    async def clear_album(self, entity_id: str) -> None:
        """Removes an album's record, bodies and handles. Unknown ids are ignored."""
        await self._clear(entity_id)

    async def clear_release(self, entity_id: str) -> None:
        """Removes a release's record, bodies and handles. Unknown ids are ignored."""
        await self._clear(entity_id)

    async def clear_all(self) -> bool:
        """
        Revokes every handle, destroys both regions and recreates them empty.

        Returns:
            True if the cache is usable afterwards.
        """
        self.handles.revoke_all()
        try:
            await asyncio.to_thread(self._destroy_regions)
            log.info("Cleared all cache entries.")
        except OSError as e:
            log.error(f"Failed to clear asset cache: {e}")
        return await self.init()

    async def entries(self) -> list[Record]:
        """Returns every readable record, including expired ones."""
        if not self._available:
            return []
        try:
            return await self.metadata.all()
        except OSError as e:
            log.error(f"Failed to list cache entries: {e}")
            return []

    async def disk_usage(self) -> int:
        """Total size of the binary region in bytes."""
        if not self._available:
            return 0
        return await self.blobs.disk_usage()
