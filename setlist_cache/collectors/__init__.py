"""Upstream page collection for the setlist cache."""
from .fetcher import FetchedPage, FetchState, SetlistPageFetcher, StopReason

__all__ = [
    "FetchedPage",
    "FetchState",
    "SetlistPageFetcher",
    "StopReason"
]
