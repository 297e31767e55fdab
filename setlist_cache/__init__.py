"""Setlist ingestion, indexing and search for a single artist's performance history."""
from .cache import SetlistCache, SnapshotUnavailableError
from .models import CacheSnapshot
from .normalizer import normalize
from .snapshot_store import SnapshotStore, needs_refresh

__all__ = [
    "CacheSnapshot",
    "SetlistCache",
    "SnapshotStore",
    "SnapshotUnavailableError",
    "needs_refresh",
    "normalize"
]
