"""
Versioned metadata records persisted in the metadata region of the asset cache.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from media_cache.exceptions import RecordValidationError

from .catalog import Album, Release

RECORD_VERSION = 1


class CachedAlbum(BaseModel):
    """What is cached for one album, and until when."""

    version: Literal[1] = RECORD_VERSION
    kind: Literal["album"] = "album"
    album: Album
    audio_urls: dict[str, str] = Field(default_factory=dict)  # song key -> signed URL
    cover_url: str
    timestamp: float
    expires_at: float

    @model_validator(mode="after")
    def validate_song_keys(self) -> "CachedAlbum":
        """Every cached song must belong to the album snapshot."""
        unknown = set(self.audio_urls) - set(self.album.song_keys())
        if unknown:
            raise ValueError(
                f"Cached songs {sorted(unknown)} are not part of album '{self.album.id}'."
            )
        return self

    @property
    def entity_id(self) -> str:
        return self.album.id

    def has_content(self) -> bool:
        return bool(self.audio_urls)

    def blob_urls(self) -> list[str]:
        return [self.cover_url, *self.audio_urls.values()]

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CachedRelease(BaseModel):
    """What is cached for a release slot. The audio preview is optional."""

    version: Literal[1] = RECORD_VERSION
    kind: Literal["release"] = "release"
    release: Release
    cover_url: str
    audio_url: str | None = None
    timestamp: float
    expires_at: float

    @property
    def entity_id(self) -> str:
        return self.release.id

    def has_content(self) -> bool:
        return bool(self.cover_url)

    def blob_urls(self) -> list[str]:
        return [self.cover_url] + ([self.audio_url] if self.audio_url else [])

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def same_objects(self, release: Release) -> bool:
        """True if this record was cached from the same cover and audio objects."""
        return (
            self.release.cover_key == release.cover_key
            and self.release.key == release.key
        )


CacheRecord = Annotated[Union[CachedAlbum, CachedRelease], Field(discriminator="kind")]

_record_adapter: TypeAdapter[CacheRecord] = TypeAdapter(CacheRecord)


def parse_record(raw: object) -> CachedAlbum | CachedRelease:
    """
    Validates a decoded JSON value as a cache record.

    Raises:
        RecordValidationError: If the value is not a record of the current version.
    """
    try:
        return _record_adapter.validate_python(raw)
    except ValidationError as e:
        raise RecordValidationError(f"Invalid cache record: {e}") from e


def dump_record(record: CachedAlbum | CachedRelease) -> dict:
    return record.model_dump(mode="json")
