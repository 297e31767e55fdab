"""Song name normalization for setlist entries.

Setlist.fm stores medleys as a single song slot ("Bumbling Bee / 4 A.M."),
and pads setlists with non-musical slots ("Tuning Jam", "Intro"). The helpers
here turn one raw entry into the canonical song names it stands for.

Known limitation: the non-song filter is a substring heuristic, so a real
title containing one of the tokens (a song called "Jam", "Introvert") is
dropped as well.
"""
from typing import Iterator, NamedTuple, Optional

from .config import NON_SONG_TOKENS

MEDLEY_DELIMITER = "/"


class NormalizedSong(NamedTuple):
    """A canonical song name and the medley entry it came from, if any."""
    name: str
    medley: Optional[str] = None


def is_non_song(part: str) -> bool:
    """Check if a song part is filler (intro, jam, ...) or too short to be a title."""
    if len(part) <= 1:
        return True
    lowered = part.lower()
    return any(token in lowered for token in NON_SONG_TOKENS)


def normalize(raw_name: str) -> Iterator[str]:
    """Yield the canonical song names contained in a raw setlist entry."""
    if not raw_name:
        return
    for part in raw_name.split(MEDLEY_DELIMITER):
        part = part.strip()
        if part and not is_non_song(part):
            yield part


def expand_song_entry(raw_name: str) -> Iterator[NormalizedSong]:
    """Yield songs for a raw entry, tagging medley parts with the original entry."""
    names = list(normalize(raw_name))
    medley = raw_name if len(names) > 1 else None
    for name in names:
        yield NormalizedSong(name, medley)
