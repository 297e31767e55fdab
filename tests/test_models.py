"""Tests for models.py — record parsing and snapshot document shape."""

from datetime import datetime, timezone

import pytest

from setlist_cache.models import (
    EPOCH,
    MalformedRecordError,
    PerformanceRecord,
    event_year,
    format_timestamp,
    parse_event_date,
    parse_timestamp,
)


class TestDates:

    def test_parse_event_date(self):
        assert parse_event_date("14-06-2024") == datetime(2024, 6, 14)

    def test_unparsable_dates_sort_as_epoch(self):
        assert parse_event_date("2024-06-14") == EPOCH
        assert parse_event_date("") == EPOCH
        assert parse_event_date(None) == EPOCH

    def test_event_year(self):
        assert event_year("14-06-2024") == "2024"
        assert event_year("sometime") == ""

    def test_timestamp_accepts_zulu_suffix(self):
        parsed = parse_timestamp("2025-01-02T03:04:05.000Z")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_timestamp_taken_as_utc(self):
        assert parse_timestamp("2025-01-02T03:04:05").tzinfo == timezone.utc

    def test_format_timestamp(self):
        value = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2025-01-02T03:04:05Z"


class TestPerformanceRecord:

    def test_from_setlist(self, make_setlist):
        record = PerformanceRecord.from_setlist(make_setlist(
            "abc", "14-06-2024", venue="Paradiso", city="Amsterdam", country="Netherlands",
            songs=["Multi-Love", "Hunnybee"], tour="V Tour",
        ))
        assert record.id == "abc"
        assert record.venue == "Paradiso"
        assert record.city_label == "Amsterdam, Netherlands"
        assert record.year == "2024"
        assert record.tour == "V Tour"
        assert [song.position for song in record.sets[0].songs] == [1, 2]
        assert list(record.song_names()) == ["Multi-Love", "Hunnybee"]

    def test_missing_country_labelled_unknown(self, make_setlist):
        record = PerformanceRecord.from_setlist(make_setlist("a", "01-01-2020", country=None))
        assert record.country is None
        assert record.city_label == "London, Unknown"

    def test_missing_venue_is_malformed(self, make_setlist):
        setlist = make_setlist("a", "01-01-2020")
        del setlist["venue"]
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)

    def test_missing_date_is_malformed(self, make_setlist):
        setlist = make_setlist("a", "")
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)

    def test_to_dict_keeps_setlistfm_shape(self, make_setlist):
        setlist = make_setlist("abc", "14-06-2024", sets=[
            {"name": "Encore", "encore": 1, "song": [{"name": "Hunnybee"}]},
        ])
        record = PerformanceRecord.from_setlist(setlist)
        data = record.to_dict()
        assert data["venue"]["city"]["country"]["name"] == "United Kingdom"
        assert data["sets"]["set"][0] == {"name": "Encore", "encore": 1, "song": [{"name": "Hunnybee"}]}
        assert PerformanceRecord.from_setlist(data) == record


class TestMalformedShapes:

    def test_null_set_list_is_empty(self, make_setlist):
        setlist = make_setlist("a", "01-01-2020")
        setlist["sets"] = {"set": None}
        assert PerformanceRecord.from_setlist(setlist).sets == ()

    @pytest.mark.parametrize("setlist", [None, "s1", ["s1"]])
    def test_non_object_setlist(self, setlist):
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)

    @pytest.mark.parametrize("field,value", [
        ("venue", "Paradiso"),
        ("sets", ["Main"]),
        ("tour", "V Tour"),
    ])
    def test_wrongly_typed_field(self, make_setlist, field, value):
        setlist = make_setlist("a", "01-01-2020")
        setlist[field] = value
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)

    def test_wrongly_typed_city(self, make_setlist):
        setlist = make_setlist("a", "01-01-2020")
        setlist["venue"]["city"] = "London"
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)

    def test_wrongly_typed_song(self, make_setlist):
        setlist = make_setlist("a", "01-01-2020", sets=[{"song": [None, {"name": "Hunnybee"}]}])
        with pytest.raises(MalformedRecordError):
            PerformanceRecord.from_setlist(setlist)


class TestEventYear:

    def test_iso_date_has_no_year(self):
        assert event_year("2023-08-08") == ""

    def test_missing_date_has_no_year(self):
        assert event_year(None) == ""

    def test_four_digit_year(self):
        assert event_year("08-08-0999") == "0999"
