"""Process-wide holder for the current setlist snapshot."""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from .api_client import SetlistFMAPIError, SetlistFMClient
from .collectors import SetlistPageFetcher
from .collectors.fetcher import PageSource
from .config import ARTIST_MBID, DEFAULT_PAGE_LIMIT
from .index_builder import IndexBuilder
from .models import (
    CacheSnapshot,
    PerformanceRecord,
    SearchIndexes,
    SongIndexEntry,
    Stats,
    format_timestamp
)
from .search import SearchEngine, SearchPage
from .snapshot_store import SnapshotStore, needs_refresh, snapshot_age_hours
from .song_catalog import list_songs

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]


class SnapshotUnavailableError(LookupError):
    """Raised when a query arrives before any snapshot was built or loaded."""


@dataclass
class RefreshStatus:
    """What the most recent rebuild is doing or how it ended."""
    in_progress: bool = False
    start_time: Optional[datetime] = None
    progress: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    last_completed: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inProgress": self.in_progress,
            "startTime": format_timestamp(self.start_time) if self.start_time else None,
            "progress": self.progress,
            "error": self.error,
            "lastCompleted": format_timestamp(self.last_completed) if self.last_completed else None
        }


class LoadedSnapshot(NamedTuple):
    snapshot: CacheSnapshot
    engine: SearchEngine


class SetlistCache:
    """Owns the current snapshot and the single in-flight rebuild.

    The current snapshot and its search engine live in one attribute that
    is replaced in a single assignment, so readers always see one complete
    snapshot. At most one rebuild runs at a time; a second request gets the
    snapshot already in memory.
    """

    def __init__(
        self,
        fetch_page: PageSource,
        store: SnapshotStore,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.fetch_page = fetch_page
        self.store = store
        self.sleep = sleep
        self.refresh_status = RefreshStatus()
        self._loaded: Optional[LoadedSnapshot] = None
        self._build_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        client: Optional[SetlistFMClient] = None,
        store: Optional[SnapshotStore] = None,
        artist_mbid: str = ARTIST_MBID
    ) -> "SetlistCache":
        """Create a cache backed by the setlist.fm API for the configured artist."""
        client = client or SetlistFMClient()
        return cls(
            fetch_page=partial(client.get_artist_setlists, artist_mbid),
            store=store or SnapshotStore()
        )

    # --- snapshot lifecycle ---

    @property
    def snapshot(self) -> Optional[CacheSnapshot]:
        loaded = self._loaded
        return loaded.snapshot if loaded else None

    @property
    def is_rebuilding(self) -> bool:
        return self._build_lock.locked()

    def _swap(self, snapshot: CacheSnapshot) -> None:
        self._loaded = LoadedSnapshot(snapshot, SearchEngine(snapshot))

    def _ensure_loaded(self) -> Optional[LoadedSnapshot]:
        if self._loaded is None:
            self.load()
        return self._loaded

    def load(self) -> Optional[CacheSnapshot]:
        """Load the stored snapshot, keeping the in-memory one if nothing usable is stored."""
        snapshot = self.store.load()
        if snapshot is not None:
            self._swap(snapshot)
        return self.snapshot

    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        snapshot = self.snapshot
        result = needs_refresh(snapshot, now)
        if snapshot is not None:
            logger.info(
                f"Cache age: {snapshot_age_hours(snapshot, now):.1f} hours, needs refresh: {result}"
            )
        return result

    def rebuild(self, progress_callback: Optional[ProgressCallback] = None) -> Optional[CacheSnapshot]:
        """Fetch the full history, build a new snapshot, save it and make it current.

        Upstream failures end the scan early but still produce a snapshot
        from what was gathered. A failed save propagates and the previous
        snapshot stays current.
        """
        if not self._build_lock.acquire(blocking=False):
            logger.info("Cache build already in progress...")
            return self.snapshot

        try:
            logger.info("Building fresh setlist cache...")
            status = self.refresh_status = RefreshStatus(
                in_progress=True, start_time=datetime.now(timezone.utc)
            )
            builder = IndexBuilder()

            def report(page: int, message: str) -> None:
                progress = {
                    "page": page,
                    "totalPerformancesSoFar": builder.performance_count,
                    "status": message
                }
                status.progress = progress
                if progress_callback:
                    progress_callback(progress)

            fetcher = SetlistPageFetcher(self.fetch_page, sleep=self.sleep, on_status=report)
            for fetched in fetcher.iter_pages():
                builder.add_page(fetched.setlists)

            snapshot = builder.finalize(total_api_calls=fetcher.state.pages_consumed)
            self.store.save(snapshot)
            self._swap(snapshot)

            self.refresh_status = RefreshStatus(last_completed=datetime.now(timezone.utc))
            logger.info(
                f"Fresh cache built: {snapshot.stats.total_performances} performances, "
                f"{snapshot.stats.total_songs} songs, {builder.skipped_records} skipped"
            )
            return snapshot
        except Exception as e:
            self.refresh_status = RefreshStatus(error=str(e))
            raise
        finally:
            self._build_lock.release()

    def _background_rebuild(self, progress_callback: Optional[ProgressCallback]) -> None:
        try:
            self.rebuild(progress_callback)
            logger.info("Background cache refresh complete")
        except Exception:
            logger.exception("Background cache refresh failed")

    def start_background_rebuild(self, progress_callback: Optional[ProgressCallback] = None) -> bool:
        """Start a rebuild on a worker thread; False if one is already running."""
        if self.is_rebuilding:
            logger.info("Cache refresh already in progress")
            return False
        thread = threading.Thread(
            target=self._background_rebuild,
            args=(progress_callback,),
            name="setlist-cache-rebuild",
            daemon=True
        )
        thread.start()
        return True

    def check_for_new_shows(self) -> bool:
        """Compare upstream's setlist total with the cached performance count."""
        current_count = self.get_stats().total_performances
        logger.info("Quick check for new shows...")
        try:
            upstream_total = int(self.fetch_page(1).get("total", 0))
        except SetlistFMAPIError as e:
            logger.error(f"Error checking for new shows: {e.message}")
            return False

        has_new_shows = upstream_total > current_count
        logger.info(
            f"setlist.fm total: {upstream_total}, cached: {current_count}, new shows: {has_new_shows}"
        )
        return has_new_shows

    def initialize(self) -> Optional[CacheSnapshot]:
        """Load on startup; build when nothing is stored, revalidate in the background when stale."""
        snapshot = self.load()
        if snapshot is None:
            logger.info("No cache found, building (this may take a few minutes)...")
            return self.rebuild()

        if not self.needs_refresh():
            logger.info("Using existing cache")
            return snapshot

        logger.info("Cache stale but usable - checking for new shows...")
        if self.check_for_new_shows():
            self.start_background_rebuild()
            logger.info("Serving stale cache while refreshing in background")
        else:
            logger.info("No new shows detected, using existing cache")
        return snapshot

    # --- read-only accessors ---

    def get_performances(self) -> Tuple[PerformanceRecord, ...]:
        loaded = self._ensure_loaded()
        return loaded.snapshot.performances if loaded else ()

    def get_song_database(self) -> Mapping[str, SongIndexEntry]:
        loaded = self._ensure_loaded()
        return MappingProxyType(loaded.snapshot.song_database if loaded else {})

    def get_search_indexes(self) -> SearchIndexes:
        loaded = self._ensure_loaded()
        return loaded.snapshot.search_indexes if loaded else SearchIndexes()

    def get_stats(self) -> Stats:
        loaded = self._ensure_loaded()
        return loaded.snapshot.stats if loaded else Stats()

    def get_performance(self, performance_id: str) -> Optional[PerformanceRecord]:
        for record in self.get_performances():
            if record.id == performance_id:
                return record
        return None

    def list_songs(self, sort_by: str = "alphabetical", limit: Optional[int] = None) -> List[SongIndexEntry]:
        return list_songs(self.get_song_database(), sort_by=sort_by, limit=limit)

    def search(self, query: str = "", page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> SearchPage:
        """Search the current snapshot; stale data is served until a rebuild replaces it."""
        loaded = self._ensure_loaded()
        if loaded is None:
            raise SnapshotUnavailableError("No setlist snapshot has been built yet")
        return loaded.engine.search(query, page=page, limit=limit)

    def status(self) -> Dict[str, Any]:
        loaded = self._ensure_loaded()
        snapshot = loaded.snapshot if loaded else None
        return {
            "hasCache": snapshot is not None,
            "needsRefresh": needs_refresh(snapshot),
            "stats": snapshot.stats.to_dict() if snapshot else {},
            "lastUpdated": format_timestamp(snapshot.last_updated) if snapshot else None,
            "inProgress": self.is_rebuilding
        }
