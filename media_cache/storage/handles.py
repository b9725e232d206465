"""
Process-local registry of revocable handles onto cached asset bytes.

A handle is what the rest of the application plays or renders from once an
asset is in the cache. The registry guarantees that a cached binary is wrapped
at most once until the handle is revoked.
"""

import logging
import uuid
from enum import Enum

from media_cache.exceptions import HandleRevokedError

log = logging.getLogger(__name__)

HANDLE_URL_PREFIX = "blob:media-cache/"


class HandleKind(Enum):
    """The four kinds of cached binaries a handle can point at."""

    ALBUM_COVER = "album_cover"
    ALBUM_SONG = "album_song"
    RELEASE_COVER = "release_cover"
    RELEASE_AUDIO = "release_audio"


class LocalHandle:
    """
    An in-memory, revocable reference to one cached binary.

    Consumers borrow it read-only and must not use it after the owning entity
    has been cleared from the cache.
    """

    __slots__ = ("url", "kind", "entity_id", "sub_key", "_data")

    def __init__(
        self, kind: HandleKind, entity_id: str, data: bytes, sub_key: str = ""
    ):
        self.url = f"{HANDLE_URL_PREFIX}{uuid.uuid4()}"
        self.kind = kind
        self.entity_id = entity_id
        self.sub_key = sub_key
        self._data: bytes | None = data

    @property
    def revoked(self) -> bool:
        return self._data is None

    @property
    def size(self) -> int:
        return len(self._data) if self._data is not None else 0

    def read(self) -> bytes:
        """
        Returns the cached bytes.

        Raises:
            HandleRevokedError: If the handle has been revoked.
        """
        if self._data is None:
            raise HandleRevokedError(f"Handle {self.url} has been revoked.")
        return self._data

    def revoke(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "revoked" if self.revoked else f"{self.size} bytes"
        return f"<LocalHandle {self.kind.value} {self.entity_id}:{self.sub_key} {state}>"


class HandleRegistry:
    """Tracks the single live handle per (kind, entity id, sub-key)."""

    def __init__(self) -> None:
        self._handles: dict[HandleKind, dict[tuple[str, str], LocalHandle]] = {
            kind: {} for kind in HandleKind
        }
        self._by_url: dict[str, LocalHandle] = {}

    def __len__(self) -> int:
        return len(self._by_url)

    def get(
        self, kind: HandleKind, entity_id: str, sub_key: str = ""
    ) -> LocalHandle | None:
        return self._handles[kind].get((entity_id, sub_key))

    def get_or_create(
        self, kind: HandleKind, entity_id: str, data: bytes, sub_key: str = ""
    ) -> LocalHandle:
        """
        Returns the live handle for the key, creating it from `data` only if
        none exists yet. Callers read the blob before calling this, so another
        lookup may have registered a handle in the meantime; that one wins.
        """
        existing = self._handles[kind].get((entity_id, sub_key))
        if existing is not None:
            return existing

        handle = LocalHandle(kind, entity_id, data, sub_key)
        self._handles[kind][(entity_id, sub_key)] = handle
        self._by_url[handle.url] = handle
        return handle

    def lookup(self, url: str) -> LocalHandle | None:
        """Dereferences a handle URL previously returned by the cache."""
        return self._by_url.get(url)

    def revoke(self, kind: HandleKind, entity_id: str, sub_key: str = "") -> bool:
        handle = self._handles[kind].pop((entity_id, sub_key), None)
        if handle is None:
            return False
        self._by_url.pop(handle.url, None)
        handle.revoke()
        return True

    def revoke_entity(self, entity_id: str) -> int:
        """Revokes every handle of every kind that belongs to `entity_id`."""
        revoked = 0
        for kind, handles in self._handles.items():
            for key in [k for k in handles if k[0] == entity_id]:
                self.revoke(kind, *key)
                revoked += 1
        if revoked:
            log.debug(f"Revoked {revoked} handle(s) for '{entity_id}'.")
        return revoked

    def revoke_all(self) -> int:
        revoked = len(self._by_url)
        for handle in self._by_url.values():
            handle.revoke()
        for handles in self._handles.values():
            handles.clear()
        self._by_url.clear()
        if revoked:
            log.debug(f"Revoked all {revoked} handle(s).")
        return revoked
