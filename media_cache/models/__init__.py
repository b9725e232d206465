"""
Data Models Layer.

This package contains the Pydantic models that define the catalog, the
persisted cache records, configuration, and runtime statistics.
"""

from .catalog import Album, Catalog, Release, ReleaseSlot, Song
from .config import CacheConfig
from .records import CachedAlbum, CachedRelease
from .stats import CacheStats

__all__ = [
    "Album",
    "CacheConfig",
    "CacheStats",
    "CachedAlbum",
    "CachedRelease",
    "Catalog",
    "Release",
    "ReleaseSlot",
    "Song",
]
