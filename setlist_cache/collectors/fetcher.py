"""Paginated setlist ingestion with pacing, rate-limit retry and circuit breaking."""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..api_client import RateLimitError, SetlistFMAPIError
from ..config import (
    MAX_PAGES,
    MAX_CONSECUTIVE_EMPTY_PAGES,
    MAX_CONSECUTIVE_ERRORS,
    SUCCESS_DELAY_SECONDS,
    EMPTY_PAGE_DELAY_SECONDS,
    EXCEPTION_DELAY_SECONDS,
    HTTP_ERROR_DELAY_SECONDS,
    RATE_LIMIT_FALLBACK_SECONDS
)

logger = logging.getLogger(__name__)

PageSource = Callable[[int], Dict[str, Any]]
StatusHook = Callable[[int, str], None]


def page_setlists(data: Any, page: int) -> List[Dict[str, Any]]:
    """Return the setlists of a decoded page; an unexpected body counts as a failed page."""
    if not isinstance(data, dict):
        raise SetlistFMAPIError(f"Unexpected body for page {page}: {type(data).__name__}")
    setlists = data.get("setlist") or []
    if not isinstance(setlists, list):
        raise SetlistFMAPIError(f"Unexpected setlist field for page {page}: {type(setlists).__name__}")
    return setlists


class StopReason(Enum):
    """Why an ingestion run ended."""
    PAGE_CAP = "page_cap"
    EMPTY_PAGES = "empty_pages"
    ERROR_PAGES = "error_pages"


@dataclass
class FetchState:
    """Loop state for one ingestion run."""
    start_page: int = 1
    page: int = 1
    consecutive_empty: int = 0
    consecutive_errors: int = 0
    stop_reason: Optional[StopReason] = None

    @property
    def pages_consumed(self) -> int:
        return self.page - self.start_page


@dataclass(frozen=True)
class FetchedPage:
    page: int
    setlists: List[Dict[str, Any]]


class SetlistPageFetcher:
    """Walk an artist's setlist pages in order until a stop condition fires.

    fetch_page(page) must return the decoded page payload or raise
    SetlistFMAPIError. Pages are yielded as they arrive; only pages with at
    least one setlist are yielded. Stopping is never an exception: whatever
    was yielded before the stop is the result of the run.
    """

    def __init__(
        self,
        fetch_page: PageSource,
        sleep: Callable[[float], None] = time.sleep,
        on_status: Optional[StatusHook] = None,
        max_pages: int = MAX_PAGES,
        max_empty_pages: int = MAX_CONSECUTIVE_EMPTY_PAGES,
        max_errors: int = MAX_CONSECUTIVE_ERRORS
    ):
        self.fetch_page = fetch_page
        self.sleep = sleep
        self.on_status = on_status
        self.max_pages = max_pages
        self.max_empty_pages = max_empty_pages
        self.max_errors = max_errors
        self.state = FetchState()

    def _report(self, page: int, status: str) -> None:
        if self.on_status:
            self.on_status(page, status)

    def _check_stop(self) -> Optional[StopReason]:
        state = self.state
        if state.page > self.max_pages:
            return StopReason.PAGE_CAP
        if state.consecutive_empty >= self.max_empty_pages:
            return StopReason.EMPTY_PAGES
        if state.consecutive_errors >= self.max_errors:
            return StopReason.ERROR_PAGES
        return None

    def _pause(self, seconds: float) -> None:
        """Sleep between pages, skipping the wait when the run is about to stop."""
        if self._check_stop() is None:
            self.sleep(seconds)

    def _fetch_with_retry(self, page: int) -> Dict[str, Any]:
        """Fetch a page, retrying exactly once after a rate-limit response."""
        try:
            return self.fetch_page(page)
        except RateLimitError as e:
            wait_time = e.retry_after if e.retry_after is not None else RATE_LIMIT_FALLBACK_SECONDS
            logger.warning(f"Rate limited on page {page}. Waiting {wait_time}s before retry...")
            self._report(page, f"Rate limited, retrying page {page} in {wait_time}s")
            self.sleep(wait_time)
            logger.info(f"Retrying page {page}...")
            return self.fetch_page(page)

    def iter_pages(self, start_page: int = 1) -> Iterator[FetchedPage]:
        """Yield non-empty pages in increasing page order."""
        state = self.state = FetchState(start_page=start_page, page=start_page)

        while True:
            reason = self._check_stop()
            if reason is not None:
                state.stop_reason = reason
                if reason is StopReason.ERROR_PAGES:
                    logger.warning(
                        f"Too many consecutive errors ({state.consecutive_errors}), "
                        f"stopping scan at page {state.page}"
                    )
                else:
                    logger.info(f"Stopping scan at page {state.page} ({reason.value})")
                self._report(state.page, f"Stopped: {reason.value}")
                return

            page = state.page
            self._report(page, f"Scanning page {page}...")
            logger.info(f"Fetching page {page}...")

            try:
                setlists = page_setlists(self._fetch_with_retry(page), page)
            except SetlistFMAPIError as e:
                state.consecutive_errors += 1
                state.page += 1
                logger.error(
                    f"Error on page {page} ({state.consecutive_errors} in a row): {e.message}"
                )
                if e.status_code is None:
                    self._pause(EXCEPTION_DELAY_SECONDS)
                else:
                    self._pause(HTTP_ERROR_DELAY_SECONDS)
                continue

            state.page += 1

            if setlists:
                state.consecutive_empty = 0
                state.consecutive_errors = 0
                logger.info(f"Page {page}: {len(setlists)} setlists")
                yield FetchedPage(page=page, setlists=setlists)
                self._pause(SUCCESS_DELAY_SECONDS)
            else:
                state.consecutive_empty += 1
                logger.info(f"Page {page} returned no setlists")
                self._pause(EMPTY_PAGE_DELAY_SECONDS)
