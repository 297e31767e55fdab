"""Tests for search.py — field matching and pagination."""

from datetime import datetime, timezone

import pytest

from setlist_cache.index_builder import IndexBuilder
from setlist_cache.search import SearchEngine, paginate


def engine_for(pages):
    builder = IndexBuilder()
    for page in pages:
        builder.add_page(page)
    return SearchEngine(builder.finalize(1, last_updated=datetime(2025, 1, 1, tzinfo=timezone.utc)))


@pytest.fixture
def engine(sample_pages):
    return engine_for(sample_pages)


def ids(result):
    return [record.id for record in result.results]


class TestMatching:

    def test_empty_query_returns_everything_in_order(self, engine):
        result = engine.search("", page=1, limit=10)
        assert ids(result) == ["s1", "s3", "s2", "s4"]
        assert result.total_results == 4
        assert not result.has_more

    def test_city_is_case_insensitive(self, engine):
        assert ids(engine.search("AMSTERDAM")) == ["s1", "s4"]

    def test_venue(self, engine):
        assert ids(engine.search("fillmore")) == ["s2"]

    def test_country(self, engine):
        assert ids(engine.search("kingdom")) == ["s3"]

    def test_full_date(self, engine):
        assert ids(engine.search("20-11-2023")) == ["s3"]

    def test_song_name(self, engine):
        assert ids(engine.search("hunnybee")) == ["s3", "s2"]

    def test_song_inside_medley(self, engine):
        assert ids(engine.search("4 A.M.")) == ["s1"]

    def test_no_match(self, engine):
        result = engine.search("glastonbury")
        assert result.results == ()
        assert result.total_results == 0
        assert not result.has_more

    def test_year_includes_medley_only_match(self, make_setlist):
        engine = engine_for([[
            make_setlist("medley-show", "08-08-2023", venue="Metro", city="Chicago",
                         country="United States", songs=["Bumbling Bee / 4 A.M."]),
            make_setlist("other-year", "08-08-2022", venue="Metro", city="Chicago",
                         country="United States", songs=["4 A.M."]),
            make_setlist("same-year", "01-02-2023", venue="Metro", city="Chicago",
                         country="United States", songs=["Multi-Love"]),
        ]])
        by_year = engine.search("2023")
        assert ids(by_year) == ["medley-show", "same-year"]
        for record in by_year.results:
            assert record.year == "2023"
        assert "medley-show" in ids(engine.search("4 a.m."))

    def test_whitespace_query_is_empty(self, engine):
        assert engine.search("   ").total_results == 4


class TestPagination:

    @pytest.mark.parametrize("total,limit,page", [
        (0, 5, 1), (4, 2, 1), (4, 2, 2), (4, 2, 3), (5, 2, 3), (7, 3, 2), (3, 10, 1),
    ])
    def test_pagination_law(self, make_setlist, total, limit, page):
        setlists = [make_setlist(f"p{i}", f"{i + 1:02d}-01-2020") for i in range(total)]
        result = engine_for([setlists]).search("", page=page, limit=limit)
        offset = (page - 1) * limit
        assert len(result.results) == min(limit, max(0, total - offset))
        assert result.has_more == (offset + limit < total)
        assert result.page == page
        assert result.limit == limit

    def test_pages_follow_snapshot_order(self, engine):
        first = engine.search("", page=1, limit=3)
        second = engine.search("", page=2, limit=3)
        assert ids(first) + ids(second) == ["s1", "s3", "s2", "s4"]
        assert first.has_more
        assert not second.has_more

    def test_invalid_page(self):
        with pytest.raises(ValueError):
            paginate([], page=0, limit=10)

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            paginate([], page=1, limit=0)

    def test_to_dict(self, engine):
        data = engine.search("fillmore").to_dict()
        assert data["totalResults"] == 1
        assert data["hasMore"] is False
        assert data["results"][0]["venue"]["name"] == "The Fillmore"
