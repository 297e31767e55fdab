"""Main entry point for refreshing the setlist cache."""
import argparse
import logging
from typing import Any, Dict, Optional, List

from .cache import SetlistCache
from .config import SETLISTFM_API_KEY, SNAPSHOT_PATH
from .song_catalog import export_song_table
from .snapshot_store import SnapshotStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def log_progress(progress: Dict[str, Any]) -> None:
    logger.info(
        f"Progress: page {progress['page']}, "
        f"{progress['totalPerformancesSoFar']} performances - {progress['status']}"
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Rebuild the snapshot when stale (or when forced) and export the song table."""
    parser = argparse.ArgumentParser(description="Refresh the setlist cache snapshot.")
    parser.add_argument("--force", action="store_true", help="rebuild even if the snapshot is fresh")
    args = parser.parse_args(argv)

    logger.info("=" * 60)
    logger.info("Setlist Cache Refresh")
    logger.info("=" * 60)

    if not SETLISTFM_API_KEY or SETLISTFM_API_KEY == "your_api_key_here":
        logger.error("SETLISTFM_API_KEY not found or not set!")
        logger.error("Please update your .env file with your API key.")
        logger.error("Get your key at: https://www.setlist.fm/settings/api")
        return 1

    store = SnapshotStore(SNAPSHOT_PATH)
    cache = SetlistCache.from_config(store=store)
    cache.load()

    if args.force or cache.needs_refresh():
        snapshot = cache.rebuild(progress_callback=log_progress)
    else:
        logger.info("Snapshot is fresh, skipping rebuild")
        snapshot = cache.snapshot

    if snapshot is None:
        logger.error("No snapshot available")
        return 1

    export_song_table(snapshot, SNAPSHOT_PATH.with_name("songs.csv"))

    stats = snapshot.stats
    logger.info("=" * 60)
    logger.info("CACHE SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Performances: {stats.total_performances}")
    logger.info(f"Unique songs: {stats.total_songs}")
    logger.info(f"Date range: {stats.earliest} - {stats.latest}")
    logger.info(f"API calls used: {stats.api_calls_used}")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
