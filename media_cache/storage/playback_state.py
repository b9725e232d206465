"""
Local playback state: which album and song were playing, where, and how loud.
Persisted as a small JSON file so a session can resume where it left off.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from media_cache.models.catalog import Album, Song

log = logging.getLogger(__name__)

DEFAULT_VOLUME = 0.7
CAROUSEL_PAGE_SIZE = 3


@dataclass
class PlaybackState:
    album_id: str | None = None
    song_id: str | None = None
    position_sec: float = 0.0
    volume: float = DEFAULT_VOLUME
    carousel_index: int | None = None


def _parse_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if math.isfinite(parsed) else default


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_id(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


class PlaybackStateStore:
    """Reads and writes `PlaybackState` without ever raising on bad input."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> PlaybackState:
        """
        Loads the saved state. A missing or corrupt file yields the defaults,
        and each unparsable field falls back to its own default.
        """
        if not self.path.is_file():
            return PlaybackState()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            log.warning(f"Ignoring unreadable playback state at {self.path}: {e}")
            return PlaybackState()
        if not isinstance(raw, dict):
            log.warning(f"Ignoring malformed playback state at {self.path}.")
            return PlaybackState()

        position = max(0.0, _parse_float(raw.get("position_sec"), 0.0))
        volume = _parse_float(raw.get("volume"), DEFAULT_VOLUME)
        return PlaybackState(
            album_id=_parse_id(raw.get("album_id")),
            song_id=_parse_id(raw.get("song_id")),
            position_sec=position,
            volume=min(1.0, max(0.0, volume)),
            carousel_index=_parse_int(raw.get("carousel_index")),
        )

    def save(self, state: PlaybackState) -> bool:
        """Best-effort write. Returns False if the file could not be written."""
        state.volume = min(1.0, max(0.0, state.volume))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(asdict(state), indent=2), encoding="utf-8")
        except OSError as e:
            log.warning(f"Could not save playback state to {self.path}: {e}")
            return False
        return True


def restore_carousel_index(
    state: PlaybackState, albums: list[Album], page_size: int = CAROUSEL_PAGE_SIZE
) -> int:
    """
    Picks the first visible album of the carousel. A saved index within range
    wins; otherwise the page holding the saved album; otherwise the start.
    """
    index = state.carousel_index
    if index is not None and 0 <= index < len(albums):
        return index
    if state.album_id:
        for position, album in enumerate(albums):
            if album.id == state.album_id:
                return (position // page_size) * page_size
    return 0


def restore_song(state: PlaybackState, songs: list[Song]) -> tuple[Song | None, float]:
    """Returns the saved song, if it still exists, and the position to resume at."""
    song = next((s for s in songs if s.id == state.song_id), None)
    if song is None:
        return None, 0.0
    return song, state.position_sec
