"""
Pydantic models describing the music catalog as discovered in the object store.
"""

from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_ARTIST = "DRIP SIFU"

LATEST_RELEASE_ID = "latest-release"
UPCOMING_RELEASE_ID = "upcoming-release"


class Song(BaseModel):
    """A single audio object inside an album folder."""

    id: str
    title: str
    artist: str = DEFAULT_ARTIST
    key: str
    duration: float = 0.0  # Filled in by the player once the audio is loaded
    album_id: str
    album_title: str = ""


class Album(BaseModel):
    """An album folder (`albums/<name>/`) with its cover and ordered songs."""

    id: str
    title: str
    artist: str = DEFAULT_ARTIST
    cover_key: str
    songs: list[Song] = Field(default_factory=list)

    def song_keys(self) -> list[str]:
        return [song.key for song in self.songs]


class Release(BaseModel):
    """One of the two singleton release slots."""

    id: str
    title: str
    artist: str = DEFAULT_ARTIST
    cover_key: str
    release_date: str  # YYYY-MM-DD
    key: str = ""  # Audio preview; empty when the slot has none

    @property
    def has_preview(self) -> bool:
        return bool(self.key)


class ReleaseSlot(Enum):
    """Object-store prefixes of the singleton release slots."""

    LATEST = "latest"
    UPCOMING = "upcoming"

    @property
    def prefix(self) -> str:
        return f"{self.value}/"

    @property
    def entity_id(self) -> str:
        return LATEST_RELEASE_ID if self is ReleaseSlot.LATEST else UPCOMING_RELEASE_ID

    @property
    def default_title(self) -> str:
        return "Latest Release" if self is ReleaseSlot.LATEST else "Coming Soon"


class Catalog(BaseModel):
    """Result of a full catalog scan."""

    albums: list[Album] = Field(default_factory=list)
    songs: list[Song] = Field(default_factory=list)

    def get_album(self, album_id: str) -> Album | None:
        return next((a for a in self.albums if a.id == album_id), None)
