"""Song listings and tabular exports built from the song database."""
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Union

import pandas as pd

from .models import CacheSnapshot, SongIndexEntry

logger = logging.getLogger(__name__)

SORT_KEYS = ("alphabetical", "mostPerformed", "lastPerformed", "firstPerformed")

SONG_TABLE_COLUMNS = [
    "song_name",
    "total_performances",
    "first_performed",
    "last_performed",
    "venue_count",
    "city_count",
    "country_count",
    "medley_performances"
]


def song_table(song_database: Mapping[str, SongIndexEntry]) -> pd.DataFrame:
    """One row per song with its performance aggregates."""
    rows = []
    for entry in song_database.values():
        rows.append({
            "song_name": entry.song_name,
            "total_performances": entry.total_performances,
            "first_performed": entry.first_performed,
            "last_performed": entry.last_performed,
            "venue_count": len(entry.venues),
            "city_count": len(entry.cities),
            "country_count": len(entry.countries),
            "medley_performances": sum(1 for ref in entry.performances if ref.medley)
        })
    return pd.DataFrame(rows, columns=SONG_TABLE_COLUMNS)


def list_songs(
    song_database: Mapping[str, SongIndexEntry],
    sort_by: str = "alphabetical",
    limit: Optional[int] = None
) -> List[SongIndexEntry]:
    """List songs in one of the supported orders.

    Ties keep alphabetical order; unknown sort keys fall back to alphabetical.
    """
    if sort_by not in SORT_KEYS:
        logger.warning(f"Unknown song sort '{sort_by}', using alphabetical")
        sort_by = "alphabetical"

    df = song_table(song_database)
    if df.empty:
        return []

    df["name_key"] = df["song_name"].str.lower()
    df = df.sort_values("name_key", kind="mergesort")

    if sort_by == "mostPerformed":
        df = df.sort_values("total_performances", ascending=False, kind="mergesort")
    elif sort_by in ("lastPerformed", "firstPerformed"):
        column = "last_performed" if sort_by == "lastPerformed" else "first_performed"
        df["date_key"] = pd.to_datetime(df[column], format="%d-%m-%Y", errors="coerce")
        df = df.sort_values(
            "date_key",
            ascending=(sort_by == "firstPerformed"),
            kind="mergesort",
            na_position="last"
        )

    if limit is not None:
        df = df.head(limit)
    return [song_database[name] for name in df["song_name"]]


def export_song_table(snapshot: CacheSnapshot, filepath: Union[str, Path]) -> Path:
    """Write the song table for a snapshot as CSV, most performed first."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    df = song_table(snapshot.song_database)
    df = df.sort_values(["total_performances", "song_name"], ascending=[False, True])
    df.to_csv(filepath, index=False)
    logger.info(f"Saved: {filepath} ({len(df)} songs)")
    return filepath
