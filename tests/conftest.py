"""
Pytest configuration and shared fixtures
"""

import sys
from pathlib import Path

import pytest

# Make the package importable without installing it
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))


def build_setlist(setlist_id, event_date, venue="Roundhouse", city="London",
                  country="United Kingdom", songs=None, sets=None, tour=None):
    """Build a setlist.fm-shaped setlist payload."""
    if sets is None:
        sets = [{"song": [{"name": name} for name in (songs or [])]}]
    city_data = {"name": city}
    if country is not None:
        city_data["country"] = {"name": country}
    setlist = {
        "id": setlist_id,
        "eventDate": event_date,
        "venue": {"name": venue, "city": city_data},
        "sets": {"set": sets},
    }
    if tour:
        setlist["tour"] = {"name": tour}
    return setlist


@pytest.fixture
def make_setlist():
    """Factory for setlist payloads"""
    return build_setlist


@pytest.fixture
def sample_pages():
    """Two pages of upstream results, newest first as setlist.fm returns them"""
    return [
        [
            build_setlist("s1", "14-06-2024", venue="Paradiso", city="Amsterdam",
                          country="Netherlands",
                          songs=["Multi-Love", "Bumbling Bee / 4 A.M.", "Tuning Jam"]),
            build_setlist("s2", "02-03-2023", venue="The Fillmore", city="San Francisco",
                          country="United States",
                          songs=["Ffunny Ffrends", "Hunnybee"]),
        ],
        [
            build_setlist("s3", "20-11-2023", venue="Roundhouse", city="London",
                          country="United Kingdom",
                          sets=[
                              {"name": "Main", "song": [{"name": "Intro"}, {"name": "Hunnybee"}]},
                              {"name": "Encore", "encore": 1, "song": [{"name": "Can't Keep Checking My Phone"}]},
                          ]),
            build_setlist("s4", "05-09-2022", venue="Paradiso", city="Amsterdam",
                          country="Netherlands",
                          songs=["Multi-Love", "Ffunny Ffrends"]),
        ],
    ]


class FakePageSource:
    """Scripted stand-in for the setlist.fm page endpoint.

    Each script entry is a list of setlists, or an exception instance to raise.
    Pages past the end of the script are empty.
    """

    def __init__(self, script, total=None):
        self.script = list(script)
        self.total = total
        self.calls = []

    def __call__(self, page):
        self.calls.append(page)
        index = len(self.calls) - 1
        item = self.script[index] if index < len(self.script) else []
        if isinstance(item, Exception):
            raise item
        total = self.total if self.total is not None else sum(
            len(entry) for entry in self.script if isinstance(entry, list)
        )
        return {"setlist": item, "total": total, "page": page}


@pytest.fixture
def fake_source():
    return FakePageSource


@pytest.fixture
def no_sleep():
    """Records requested sleeps instead of sleeping"""
    sleeps = []
    sleeps_append = sleeps.append

    def sleep(seconds):
        sleeps_append(seconds)

    sleep.calls = sleeps
    return sleep
