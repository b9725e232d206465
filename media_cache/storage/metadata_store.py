"""
The metadata region of the asset cache: one JSON file per entity id holding a
versioned record of what is cached for that entity.
"""

import asyncio
import hashlib
import json
import logging
import shutil
import time
from pathlib import Path

from media_cache.exceptions import RecordValidationError
from media_cache.models.records import CachedAlbum, CachedRelease, dump_record, parse_record

log = logging.getLogger(__name__)

Record = CachedAlbum | CachedRelease


class MetadataStore:
    """
    Stores cache records keyed by entity id.

    Unreadable files and records that fail validation are deleted on read and
    reported as absent, so a corrupt entry can never wedge the cache.
    """

    def __init__(self, root: Path):
        self.root = root

    def open(self) -> None:
        """Creates the region directory. Raises OSError if that is impossible."""
        self.root.mkdir(parents=True, exist_ok=True)

    def _get_record_path(self, entity_id: str) -> Path:
        """Generates a safe filename for a given entity id."""
        hashed_key = hashlib.md5(entity_id.encode("utf-8")).hexdigest()  # noqa: S324
        return self.root / f"{hashed_key}.json"

    def _discard(self, path: Path, reason: str) -> None:
        log.warning(f"Discarding unreadable cache record {path.name}: {reason}")
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.debug(f"Could not delete {path.name}: {e}")

    def _read_sync(self, path: Path) -> Record | None:
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f)
            return parse_record(payload.get("value"))
        except (
            json.JSONDecodeError,
            UnicodeDecodeError,
            AttributeError,
            RecordValidationError,
        ) as e:
            self._discard(path, str(e))
            return None

    def _get_sync(self, entity_id: str) -> Record | None:
        return self._read_sync(self._get_record_path(entity_id))

    def _put_sync(self, record: Record) -> None:
        path = self._get_record_path(record.entity_id)
        payload = {
            "key": record.entity_id,
            "timestamp": time.time(),
            "value": dump_record(record),
        }
        tmp_path = path.with_suffix(".part")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        tmp_path.replace(path)

    def _delete_sync(self, entity_id: str) -> bool:
        path = self._get_record_path(entity_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _all_sync(self) -> list[Record]:
        records = []
        for record_file in sorted(self.root.glob("*.json")):
            record = self._read_sync(record_file)
            if record is not None:
                records.append(record)
        return records

    async def get(self, entity_id: str) -> Record | None:
        """
        Returns the record for `entity_id`, or None if absent or invalid.

        Raises:
            OSError: If the region itself cannot be read.
        """
        return await asyncio.to_thread(self._get_sync, entity_id)

    async def put(self, record: Record) -> None:
        await asyncio.to_thread(self._put_sync, record)

    async def delete(self, entity_id: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, entity_id)

    async def all(self) -> list[Record]:
        """Returns every valid record in the region, discarding invalid ones."""
        return await asyncio.to_thread(self._all_sync)

    def destroy(self) -> None:
        """Removes the whole region from disk."""
        if self.root.exists():
            shutil.rmtree(self.root)
