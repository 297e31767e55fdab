"""Multi-field paginated search over a loaded snapshot."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .config import DEFAULT_PAGE_LIMIT
from .models import CacheSnapshot, PerformanceRecord
from .normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchPage:
    """One page of search results plus pagination metadata."""
    results: Tuple[PerformanceRecord, ...]
    total_results: int
    has_more: bool
    page: int
    limit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [record.to_dict() for record in self.results],
            "totalResults": self.total_results,
            "hasMore": self.has_more,
            "page": self.page,
            "limit": self.limit
        }


def paginate(items: Sequence[PerformanceRecord], page: int, limit: int) -> SearchPage:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if limit < 1:
        raise ValueError(f"limit must be > 0, got {limit}")

    start = (page - 1) * limit
    end = start + limit
    return SearchPage(
        results=tuple(items[start:end]),
        total_results=len(items),
        has_more=end < len(items),
        page=page,
        limit=limit
    )


def search_fields(record: PerformanceRecord) -> Tuple[str, ...]:
    """Lowercased text a query is matched against for one performance.

    Song names are included both raw and after medley splitting, so a song
    that only appeared inside a medley is still found by its own title.
    """
    fields = [
        record.city,
        record.venue,
        record.country or "",
        record.year,
        record.event_date
    ]
    for name in record.song_names():
        fields.append(name)
        fields.extend(normalize(name))
    return tuple(field.lower() for field in fields if field)


class SearchEngine:
    """Answers queries against one immutable snapshot.

    Match fields are computed once per snapshot; results keep the
    snapshot's performance order (most recent first).
    """

    def __init__(self, snapshot: CacheSnapshot):
        self.snapshot = snapshot
        self._fields = [search_fields(record) for record in snapshot.performances]

    def search(self, query: str = "", page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> SearchPage:
        query = (query or "").lower().strip()
        if not query:
            return paginate(self.snapshot.performances, page, limit)

        matched: List[PerformanceRecord] = [
            record
            for record, fields in zip(self.snapshot.performances, self._fields)
            if any(query in field for field in fields)
        ]
        result = paginate(matched, page, limit)
        logger.info(
            f"Search results: {len(result.results)}/{result.total_results} "
            f"performances for \"{query}\" (page {page})"
        )
        return result
