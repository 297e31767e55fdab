"""Durable storage for cache snapshots."""
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from .config import SNAPSHOT_PATH, STALE_AFTER_HOURS
from .models import CacheSnapshot

logger = logging.getLogger(__name__)


def _utc_now(now: Optional[datetime] = None) -> datetime:
    """Default to the current time; a naive value is taken as UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now


def snapshot_age_hours(snapshot: CacheSnapshot, now: Optional[datetime] = None) -> float:
    now = _utc_now(now)
    return (now - snapshot.last_updated).total_seconds() / 3600


def needs_refresh(
    snapshot: Optional[CacheSnapshot],
    now: Optional[datetime] = None,
    max_age: timedelta = timedelta(hours=STALE_AFTER_HOURS)
) -> bool:
    """Check if a snapshot is missing or older than the staleness threshold."""
    if snapshot is None:
        return True
    now = _utc_now(now)
    return now - snapshot.last_updated > max_age


class SnapshotStore:
    """Persist snapshots as a single JSON document.

    save() writes to a temporary file beside the target and renames it into
    place, so a reader sees either the previous document or the new one.
    """

    def __init__(self, path: Union[str, Path] = SNAPSHOT_PATH):
        self.path = Path(path)

    def save(self, snapshot: CacheSnapshot) -> None:
        """Replace the stored snapshot. OSError (disk full, permissions) propagates."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info(f"Saved snapshot: {self.path} ({len(snapshot.performances)} performances)")

    def load(self) -> Optional[CacheSnapshot]:
        """Load the stored snapshot, or None when there is none usable."""
        if not self.path.exists():
            logger.info("No existing snapshot found, will build fresh")
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            snapshot = CacheSnapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.path}: {e}")
            return None

        logger.info(
            f"Snapshot loaded: {len(snapshot.performances)} performances, "
            f"last updated: {snapshot.last_updated.isoformat()}"
        )
        return snapshot
