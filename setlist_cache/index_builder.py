"""Accumulate fetched setlists into the song database and search indexes."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from .models import (
    CacheSnapshot,
    MalformedRecordError,
    PerformanceRecord,
    PerformanceRef,
    SearchIndexes,
    SongIndexEntry,
    Stats,
    parse_event_date
)
from .normalizer import expand_song_entry

logger = logging.getLogger(__name__)


class SongAccumulator:
    """Mutable per-song state while a build is in progress."""

    def __init__(self, song_name: str):
        self.song_name = song_name
        self.performances: List[PerformanceRef] = []
        self.venues: Set[str] = set()
        self.cities: Set[str] = set()
        self.countries: Set[str] = set()

    def add(self, ref: PerformanceRef) -> None:
        self.performances.append(ref)
        self.venues.add(ref.venue)
        if ref.city:
            self.cities.add(ref.city)
        if ref.country:
            self.countries.add(ref.country)

    def freeze(self) -> SongIndexEntry:
        performances = sorted(self.performances, key=lambda ref: parse_event_date(ref.date), reverse=True)
        return SongIndexEntry(
            song_name=self.song_name,
            performances=tuple(performances),
            venues=tuple(sorted(self.venues)),
            cities=tuple(sorted(self.cities)),
            countries=tuple(sorted(self.countries)),
            first_performed=performances[-1].date if performances else None,
            last_performed=performances[0].date if performances else None,
            total_performances=len(performances)
        )


class IndexBuilder:
    """Builds a CacheSnapshot from a stream of setlist pages.

    Records must be added in page order; ties on event date keep that order
    in every sorted output. finalize() does not modify the accumulated
    state, so it can be called repeatedly with identical results.
    """

    def __init__(self):
        self._performances: List[PerformanceRecord] = []
        self._songs: Dict[str, SongAccumulator] = {}
        self._cities: Set[str] = set()
        self._venues: Set[str] = set()
        self._years: Set[str] = set()
        self.skipped_records = 0

    @property
    def performance_count(self) -> int:
        return len(self._performances)

    def add_page(self, setlists: Iterable[Dict[str, Any]]) -> int:
        """Add one page of raw setlists; returns how many were indexed."""
        added = 0
        for setlist in setlists:
            try:
                record = PerformanceRecord.from_setlist(setlist)
            except MalformedRecordError as e:
                self.skipped_records += 1
                logger.warning(f"Skipping malformed setlist: {e}")
                continue
            self.add_performance(record)
            added += 1
        return added

    def add_performance(self, record: PerformanceRecord) -> None:
        self._performances.append(record)
        self._cities.add(record.city_label)
        self._venues.add(record.venue)
        if record.year:
            self._years.add(record.year)

        for song_set in record.sets:
            for song in song_set.songs:
                for normalized in expand_song_entry(song.name):
                    accumulator = self._songs.get(normalized.name)
                    if accumulator is None:
                        accumulator = self._songs[normalized.name] = SongAccumulator(normalized.name)
                    accumulator.add(PerformanceRef(
                        id=record.id,
                        venue=record.venue,
                        city=record.city,
                        country=record.country,
                        date=record.event_date,
                        set_name=song_set.name,
                        song_position=song.position,
                        medley=normalized.medley
                    ))

    def finalize(self, total_api_calls: int, last_updated: Optional[datetime] = None) -> CacheSnapshot:
        """Sort and freeze everything accumulated so far into a snapshot."""
        performances = tuple(sorted(self._performances, key=lambda record: record.sort_date, reverse=True))
        song_database = {name: self._songs[name].freeze() for name in sorted(self._songs)}
        search_indexes = SearchIndexes(
            cities=tuple(sorted(self._cities)),
            venues=tuple(sorted(self._venues)),
            years=tuple(sorted(self._years, reverse=True))
        )
        stats = Stats(
            total_performances=len(performances),
            total_songs=len(song_database),
            earliest=performances[-1].event_date if performances else None,
            latest=performances[0].event_date if performances else None,
            api_calls_used=total_api_calls
        )
        return CacheSnapshot(
            last_updated=last_updated or datetime.now(timezone.utc),
            total_api_calls=total_api_calls,
            performances=performances,
            song_database=song_database,
            search_indexes=search_indexes,
            stats=stats
        )
