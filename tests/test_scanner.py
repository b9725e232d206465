"""
Tests for CatalogScanner against a fake object store.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from media_cache.catalog.object_store import ObjectStore
from media_cache.catalog.scanner import CatalogScanner
from media_cache.exceptions import StorageUnavailableError
from media_cache.models.catalog import ReleaseSlot

TODAY = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc).timestamp()


def make_store(keys: list[str], texts: dict[str, str] | None = None):
    store = AsyncMock(spec=ObjectStore)
    store.list_keys.side_effect = lambda prefix=None: [
        k for k in keys if prefix is None or k.startswith(prefix)
    ]
    store.read_text.side_effect = lambda key: (texts or {})[key]
    return store


def make_scanner(store) -> CatalogScanner:
    return CatalogScanner(store, clock=lambda: TODAY)


@pytest.mark.asyncio
class TestScan:
    """Tests for CatalogScanner.scan."""

    async def test_groups_albums_and_songs(self):
        store = make_store(
            [
                "albums/Night Drive/cover.jpg",
                "albums/Night Drive/Neon-Lights.mp3",
                "albums/Night Drive/Outro.wav",
                "albums/Summer-Tape/art.png",
                "albums/Summer-Tape/notes.txt",
                "latest/cover.jpg",
                "loose-file.mp3",
            ]
        )

        catalog = await make_scanner(store).scan()

        assert [a.id for a in catalog.albums] == ["night-drive", "summer-tape"]
        night_drive = catalog.albums[0]
        assert night_drive.title == "Night Drive"
        assert night_drive.cover_key == "albums/Night Drive/cover.jpg"
        assert [s.id for s in night_drive.songs] == [
            "night-drive-neon-lights",
            "night-drive-outro",
        ]
        assert night_drive.songs[0].title == "Neon Lights"
        assert all(s.album_id == "night-drive" for s in night_drive.songs)
        assert catalog.albums[1].title == "Summer Tape"
        assert catalog.albums[1].songs == []
        assert len(catalog.songs) == 2

    async def test_album_without_cover_is_omitted(self):
        store = make_store(["albums/demo/track.mp3"])

        catalog = await make_scanner(store).scan()

        assert catalog.albums == []
        assert catalog.songs == []

    async def test_listing_failure_yields_empty_catalog(self):
        store = AsyncMock(spec=ObjectStore)
        store.list_keys.side_effect = StorageUnavailableError("no such bucket")

        catalog = await make_scanner(store).scan()

        assert catalog.albums == [] and catalog.songs == []

    async def test_uses_configured_artist(self):
        store = make_store(["albums/a/cover.jpg", "albums/a/song.mp3"])

        catalog = await CatalogScanner(store, artist="Someone Else").scan()

        assert catalog.albums[0].artist == "Someone Else"
        assert catalog.songs[0].artist == "Someone Else"


@pytest.mark.asyncio
class TestFindRelease:
    """Tests for CatalogScanner.find_release."""

    async def test_title_and_date_from_cover_name(self):
        store = make_store(
            ["latest/Fortune-Cookies-3-2025-09-20.jpg", "latest/preview.mp3"]
        )

        release = await make_scanner(store).find_release(ReleaseSlot.LATEST)

        assert release.id == "latest-release"
        assert release.title == "Fortune Cookies 3"
        assert release.release_date == "2025-09-20"
        assert release.key == "latest/preview.mp3"

    async def test_bare_cover_uses_defaults(self):
        store = make_store(["latest/cover.png"])

        release = await make_scanner(store).find_release(ReleaseSlot.LATEST)

        assert release.title == "Latest Release"
        assert release.release_date == "2025-01-15"
        assert release.has_preview is False

    async def test_no_cover_means_no_release(self):
        store = make_store(["latest/preview.mp3"])
        assert await make_scanner(store).find_release(ReleaseSlot.LATEST) is None

    async def test_upcoming_defaults_thirty_days_ahead(self):
        store = make_store(["upcoming/cover.jpg"])

        release = await make_scanner(store).find_release(ReleaseSlot.UPCOMING)

        assert release.id == "upcoming-release"
        assert release.title == "Coming Soon"
        assert release.release_date == "2025-02-14"

    async def test_upcoming_sidecar_fills_title_and_date(self):
        store = make_store(
            ["upcoming/cover.jpg", "upcoming/info.txt"],
            {"upcoming/info.txt": "Release Date: 2025-03-01\nTitle: Big Summer Single\n"},
        )

        release = await make_scanner(store).find_release(ReleaseSlot.UPCOMING)

        assert release.title == "Big Summer Single"
        assert release.release_date == "2025-03-01"

    async def test_sidecar_is_not_read_when_cover_has_everything(self):
        store = make_store(
            ["upcoming/New-Era-2025-06-01.jpg", "upcoming/info.txt"],
            {"upcoming/info.txt": "Title: Ignored"},
        )

        release = await make_scanner(store).find_release(ReleaseSlot.UPCOMING)

        assert release.title == "New Era"
        store.read_text.assert_not_awaited()

    async def test_unreadable_sidecar_keeps_defaults(self):
        store = make_store(["upcoming/cover.jpg", "upcoming/info.txt"])
        store.read_text.side_effect = StorageUnavailableError("denied")

        release = await make_scanner(store).find_release(ReleaseSlot.UPCOMING)

        assert release.title == "Coming Soon"
        assert release.release_date == "2025-02-14"

    async def test_latest_ignores_sidecar(self):
        store = make_store(["latest/cover.jpg", "latest/info.txt"])

        await make_scanner(store).find_release(ReleaseSlot.LATEST)

        store.read_text.assert_not_awaited()
