"""
Storage Layer.

This package handles all local persistence: the two-region asset cache and its
handle registry, the configuration file, and the saved playback state.
"""

from .asset_cache import AssetCache
from .config_manager import ConfigManager
from .handles import HandleKind, HandleRegistry, LocalHandle
from .playback_state import PlaybackState, PlaybackStateStore, restore_carousel_index

__all__ = [
    "AssetCache",
    "ConfigManager",
    "HandleKind",
    "HandleRegistry",
    "LocalHandle",
    "PlaybackState",
    "PlaybackStateStore",
    "restore_carousel_index",
]
