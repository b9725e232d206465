"""
Builds the music catalog from the object layout of the bucket:

    albums/<album name>/<cover>.jpg
    albums/<album name>/<song>.mp3
    latest/<title>-<YYYY-MM-DD>.jpg   (+ optional audio preview)
    upcoming/<title>.jpg              (+ optional preview and .txt sidecar)
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from media_cache.exceptions import StorageUnavailableError
from media_cache.models.catalog import DEFAULT_ARTIST, Album, Catalog, Release, ReleaseSlot, Song
from media_cache.utils.filenames import (
    future_date,
    is_audio,
    is_image,
    parse_cover_filename,
    parse_sidecar,
    slugify,
    song_name,
)

from .object_store import ObjectStore

log = logging.getLogger(__name__)

ALBUMS_PREFIX = "albums/"
UPCOMING_LEAD_DAYS = 30


class CatalogScanner:
    """Discovers albums, songs and the two release slots in an `ObjectStore`."""

    def __init__(
        self,
        store: ObjectStore,
        artist: str = DEFAULT_ARTIST,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.artist = artist
        self._clock = clock

    def _today(self):
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).date()

    async def scan(self) -> Catalog:
        """
        Lists the whole bucket and groups `albums/<name>/` objects into albums.

        Folders without a cover image are omitted. A listing failure is logged
        and yields an empty catalog.
        """
        try:
            keys = await self.store.list_keys()
        except StorageUnavailableError as e:
            log.error(f"Error scanning music library: {e}")
            return Catalog()

        # Folder name -> keys, in listing order
        folders: dict[str, list[str]] = {}
        for key in keys:
            parts = key.split("/")
            if len(parts) > 2 and parts[0] == ALBUMS_PREFIX.rstrip("/"):
                folders.setdefault(parts[1], []).append(key)

        catalog = Catalog()
        for folder, folder_keys in folders.items():
            cover_key = next((k for k in folder_keys if is_image(k)), None)
            if cover_key is None:
                log.debug(f"Skipping album folder '{folder}': no cover image.")
                continue

            album = Album(
                id=slugify(folder),
                title=folder.replace("-", " "),
                artist=self.artist,
                cover_key=cover_key,
            )
            for key in folder_keys:
                if not is_audio(key):
                    continue
                name = song_name(key)
                song = Song(
                    id=f"{album.id}-{slugify(name)}",
                    title=name.replace("-", " "),
                    artist=self.artist,
                    key=key,
                    album_id=album.id,
                    album_title=album.title,
                )
                album.songs.append(song)
                catalog.songs.append(song)
            catalog.albums.append(album)

        log.info(
            f"Found {len(catalog.albums)} album(s) with "
            f"{len(catalog.songs)} song(s) in total."
        )
        return catalog

    async def find_release(self, slot: ReleaseSlot) -> Release | None:
        """
        Builds the release published under a slot prefix.

        Returns:
            The release, or None if the prefix holds no cover image.

        Raises:
            StorageUnavailableError: If the prefix cannot be listed.
        """
        keys = await self.store.list_keys(slot.prefix)
        cover_key = next((k for k in keys if is_image(k)), None)
        if cover_key is None:
            log.debug(f"No cover found under '{slot.prefix}'.")
            return None
        audio_key = next((k for k in keys if is_audio(k)), "")

        title, release_date = parse_cover_filename(cover_key, slot.default_title)

        if slot is ReleaseSlot.UPCOMING:
            sidecar_key = next((k for k in keys if k.endswith(".txt")), None)
            if sidecar_key and (not release_date or title == slot.default_title):
                try:
                    sidecar_title, sidecar_date = parse_sidecar(
                        await self.store.read_text(sidecar_key)
                    )
                except StorageUnavailableError as e:
                    log.warning(f"Error reading release metadata '{sidecar_key}': {e}")
                else:
                    release_date = release_date or sidecar_date
                    if title == slot.default_title and sidecar_title:
                        title = sidecar_title

        if not release_date:
            today = self._today()
            release_date = (
                future_date(today, UPCOMING_LEAD_DAYS)
                if slot is ReleaseSlot.UPCOMING
                else today.isoformat()
            )

        return Release(
            id=slot.entity_id,
            title=title,
            artist=self.artist,
            cover_key=cover_key,
            release_date=release_date,
            key=audio_key,
        )
