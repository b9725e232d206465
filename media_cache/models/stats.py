"""
Dataclass for tracking asset cache statistics within a process.
"""

from dataclasses import dataclass, field


@dataclass
class CacheStats:
    """Counts cache lookups and remote fetches for the lifetime of a store."""

    hits: int = 0
    misses: int = 0
    items_fetched: int = 0
    items_failed: int = 0
    bytes_fetched: int = 0
    evictions: int = 0
    entities_cached: set[str] = field(default_factory=set)

    def record_lookup(self, is_hit: bool) -> None:
        if is_hit:
            self.hits += 1
        else:
            self.misses += 1

    def record_fetch(self, size: int | None) -> None:
        """Records one remote fetch. `None` marks a failed fetch."""
        if size is None:
            self.items_failed += 1
        else:
            self.items_fetched += 1
            self.bytes_fetched += size

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
