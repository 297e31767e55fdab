"""Data models for the setlist cache snapshot."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

from .config import EVENT_DATE_FORMAT

EPOCH = datetime(1970, 1, 1)


class MalformedRecordError(ValueError):
    """Raised when an upstream setlist lacks the fields needed to index it."""


def parse_event_date(date_str: Optional[str]) -> datetime:
    """Parse setlist.fm date format (dd-MM-yyyy); unparsable dates sort as the epoch."""
    if not date_str:
        return EPOCH
    try:
        return datetime.strptime(date_str, EVENT_DATE_FORMAT)
    except ValueError:
        return EPOCH


def event_year(date_str: Optional[str]) -> str:
    """Return the four-digit year of a dd-MM-yyyy date string, or '' if it does not parse."""
    if not date_str:
        return ""
    try:
        return f"{datetime.strptime(date_str, EVENT_DATE_FORMAT).year:04d}"
    except (TypeError, ValueError):
        return ""


def _as_mapping(value: Any, what: str, setlist_id: Any = None) -> Dict[str, Any]:
    """Return value as a dict, treating None as empty; anything else is malformed."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedRecordError(f"Setlist {setlist_id!r} has a malformed {what}: {value!r}")
    return value


def _as_list(value: Any, what: str, setlist_id: Any = None) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedRecordError(f"Setlist {setlist_id!r} has a malformed {what}: {value!r}")
    return value


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SongEntry:
    """A raw song slot in a set, as published upstream."""
    name: str
    position: int  # 1-indexed within its set


@dataclass(frozen=True)
class SongSet:
    name: Optional[str]
    songs: Tuple[SongEntry, ...] = ()
    encore: Optional[int] = None


@dataclass(frozen=True)
class PerformanceRecord:
    """One upstream setlist (a single show)."""
    id: str
    event_date: str
    venue: str
    city: str
    country: Optional[str]
    sets: Tuple[SongSet, ...] = ()
    tour: Optional[str] = None
    url: Optional[str] = None

    @property
    def sort_date(self) -> datetime:
        return parse_event_date(self.event_date)

    @property
    def year(self) -> str:
        return event_year(self.event_date)

    @property
    def city_label(self) -> str:
        """Composite 'city, country' label used by the city index."""
        return f"{self.city}, {self.country or 'Unknown'}"

    def song_names(self) -> Iterator[str]:
        """Yield every raw song name in set order."""
        for song_set in self.sets:
            for song in song_set.songs:
                if song.name:
                    yield song.name

    @classmethod
    def from_setlist(cls, setlist: Dict[str, Any]) -> "PerformanceRecord":
        """Build a record from a setlist.fm setlist payload."""
        if not isinstance(setlist, dict):
            raise MalformedRecordError(f"Setlist is not an object: {setlist!r}")

        setlist_id = setlist.get("id")
        venue = _as_mapping(setlist.get("venue"), "venue", setlist_id)
        event_date = setlist.get("eventDate")
        venue_name = venue.get("name")
        if not event_date or not venue_name:
            raise MalformedRecordError(
                f"Setlist {setlist_id!r} is missing event date or venue"
            )
        if not isinstance(event_date, str) or not isinstance(venue_name, str):
            raise MalformedRecordError(f"Setlist {setlist_id!r} has a non-text event date or venue")

        city = _as_mapping(venue.get("city"), "city", setlist_id)
        country = _as_mapping(city.get("country"), "country", setlist_id).get("name")

        sets = []
        sets_data = _as_mapping(setlist.get("sets"), "sets", setlist_id)
        for set_item in _as_list(sets_data.get("set"), "set list", setlist_id):
            set_item = _as_mapping(set_item, "set", setlist_id)
            songs = []
            for index, song in enumerate(_as_list(set_item.get("song"), "song list", setlist_id), 1):
                song = _as_mapping(song, "song", setlist_id)
                name = song.get("name") or ""
                if not isinstance(name, str):
                    raise MalformedRecordError(f"Setlist {setlist_id!r} has a non-text song name: {name!r}")
                songs.append(SongEntry(name=name, position=index))
            sets.append(SongSet(
                name=set_item.get("name"),
                songs=tuple(songs),
                encore=set_item.get("encore")
            ))

        tour = _as_mapping(setlist.get("tour"), "tour", setlist_id)
        return cls(
            id=str(setlist_id or ""),
            event_date=event_date,
            venue=venue_name,
            city=city.get("name") or "",
            country=country,
            sets=tuple(sets),
            tour=tour.get("name"),
            url=setlist.get("url")
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the setlist.fm payload shape."""
        city: Dict[str, Any] = {"name": self.city}
        if self.country is not None:
            city["country"] = {"name": self.country}

        sets = []
        for song_set in self.sets:
            set_item: Dict[str, Any] = {"song": [{"name": song.name} for song in song_set.songs]}
            if song_set.name is not None:
                set_item["name"] = song_set.name
            if song_set.encore is not None:
                set_item["encore"] = song_set.encore
            sets.append(set_item)

        data: Dict[str, Any] = {
            "id": self.id,
            "eventDate": self.event_date,
            "venue": {"name": self.venue, "city": city},
            "sets": {"set": sets}
        }
        if self.tour:
            data["tour"] = {"name": self.tour}
        if self.url:
            data["url"] = self.url
        return data


@dataclass(frozen=True)
class PerformanceRef:
    """A single performance of a song, as referenced from the song index."""
    id: str
    venue: str
    city: str
    country: Optional[str]
    date: str
    set_name: Optional[str]
    song_position: int
    medley: Optional[str] = None  # original compound entry when split from a medley

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "venue": self.venue,
            "city": self.city,
            "country": self.country,
            "date": self.date,
            "setName": self.set_name,
            "songPosition": self.song_position
        }
        if self.medley:
            data["medleyName"] = self.medley
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceRef":
        return cls(
            id=data["id"],
            venue=data["venue"],
            city=data["city"],
            country=data.get("country"),
            date=data["date"],
            set_name=data.get("setName"),
            song_position=data["songPosition"],
            medley=data.get("medleyName")
        )


@dataclass(frozen=True)
class SongIndexEntry:
    """Everything known about one canonical song across all performances."""
    song_name: str
    performances: Tuple[PerformanceRef, ...]
    venues: Tuple[str, ...]
    cities: Tuple[str, ...]
    countries: Tuple[str, ...]
    first_performed: Optional[str]
    last_performed: Optional[str]
    total_performances: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "songName": self.song_name,
            "performances": [ref.to_dict() for ref in self.performances],
            "venues": list(self.venues),
            "cities": list(self.cities),
            "countries": list(self.countries),
            "firstPerformed": self.first_performed,
            "lastPerformed": self.last_performed,
            "totalPerformances": self.total_performances
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SongIndexEntry":
        return cls(
            song_name=data["songName"],
            performances=tuple(PerformanceRef.from_dict(ref) for ref in data["performances"]),
            venues=tuple(data.get("venues", [])),
            cities=tuple(data.get("cities", [])),
            countries=tuple(data.get("countries", [])),
            first_performed=data.get("firstPerformed"),
            last_performed=data.get("lastPerformed"),
            total_performances=data["totalPerformances"]
        )


@dataclass(frozen=True)
class SearchIndexes:
    """Sorted, deduplicated facets for autocomplete and filtering."""
    cities: Tuple[str, ...] = ()
    venues: Tuple[str, ...] = ()
    years: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"cities": list(self.cities), "venues": list(self.venues), "years": list(self.years)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchIndexes":
        return cls(
            cities=tuple(data.get("cities", [])),
            venues=tuple(data.get("venues", [])),
            years=tuple(data.get("years", []))
        )


@dataclass(frozen=True)
class Stats:
    total_performances: int = 0
    total_songs: int = 0
    earliest: Optional[str] = None
    latest: Optional[str] = None
    api_calls_used: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPerformances": self.total_performances,
            "totalSongs": self.total_songs,
            "dateRange": {"earliest": self.earliest, "latest": self.latest},
            "apiCallsUsed": self.api_calls_used
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stats":
        date_range = data.get("dateRange") or {}
        return cls(
            total_performances=data.get("totalPerformances", 0),
            total_songs=data.get("totalSongs", 0),
            earliest=date_range.get("earliest"),
            latest=date_range.get("latest"),
            api_calls_used=data.get("apiCallsUsed", 0)
        )


@dataclass(frozen=True)
class CacheSnapshot:
    """A complete, immutable build of the performance index.

    Snapshots are never modified after construction; a rebuild produces a
    new snapshot that replaces the current one wholesale.
    """
    last_updated: datetime
    total_api_calls: int
    performances: Tuple[PerformanceRecord, ...]
    song_database: Dict[str, SongIndexEntry] = field(default_factory=dict)
    search_indexes: SearchIndexes = field(default_factory=SearchIndexes)
    stats: Stats = field(default_factory=Stats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdated": format_timestamp(self.last_updated),
            "totalApiCalls": self.total_api_calls,
            "performances": [record.to_dict() for record in self.performances],
            "songDatabase": {name: entry.to_dict() for name, entry in self.song_database.items()},
            "searchIndexes": self.search_indexes.to_dict(),
            "stats": self.stats.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheSnapshot":
        return cls(
            last_updated=parse_timestamp(data["lastUpdated"]),
            total_api_calls=data.get("totalApiCalls", 0),
            performances=tuple(PerformanceRecord.from_setlist(item) for item in data["performances"]),
            song_database={
                name: SongIndexEntry.from_dict(entry)
                for name, entry in data.get("songDatabase", {}).items()
            },
            search_indexes=SearchIndexes.from_dict(data.get("searchIndexes") or {}),
            stats=Stats.from_dict(data.get("stats") or {})
        )
