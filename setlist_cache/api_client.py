"""Setlist.fm API client with rate limiting and error classification."""
import time
import logging
from typing import Optional, Dict, Any
import requests
from requests.exceptions import RequestException

from .config import (
    SETLISTFM_API_KEY,
    SETLISTFM_BASE_URL,
    REQUEST_TIMEOUT_SECONDS,
    ITEMS_PER_PAGE
)

logger = logging.getLogger(__name__)

# setlist.fm allows two requests per second per key
MIN_REQUEST_INTERVAL_SECONDS = 0.5


class SetlistFMAPIError(Exception):
    """Custom exception for Setlist.fm API errors.

    A missing status_code means the request never produced a usable HTTP
    response (connection failure, timeout, undecodable body).
    """
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class RateLimitError(SetlistFMAPIError):
    """Raised on HTTP 429; retry_after is the server's hint in seconds, if any."""
    def __init__(self, message: str, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def empty_page(page: int) -> Dict[str, Any]:
    return {"setlist": [], "total": 0, "page": page, "itemsPerPage": ITEMS_PER_PAGE}


class SetlistFMClient:
    """Client for interacting with the Setlist.fm API.

    Each call issues exactly one request; retry and backoff policy belongs
    to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        min_interval: float = MIN_REQUEST_INTERVAL_SECONDS
    ):
        """Initialize the client."""
        self.api_key = api_key or SETLISTFM_API_KEY
        if not self.api_key or self.api_key == "your_api_key_here":
            raise ValueError(
                "API key required. Set SETLISTFM_API_KEY in your .env file. "
                "Get your key at: https://www.setlist.fm/settings/api"
            )

        self.base_url = (base_url or SETLISTFM_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "x-api-key": self.api_key,
            "Accept": "application/json"
        })
        self.min_interval = min_interval
        self._last_request_time = 0.0

    def _rate_limit(self) -> None:
        """Enforce a minimum interval between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.min_interval:
            sleep_time = self.min_interval - elapsed
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)
        self._last_request_time = time.time()

    def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Make a single GET request; returns None when the resource does not exist."""
        url = f"{self.base_url}{endpoint}"
        self._rate_limit()

        try:
            logger.debug(f"Request: GET {url} params={params}")
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        except RequestException as e:
            raise SetlistFMAPIError(f"Request failed: {e}")

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as e:
                raise SetlistFMAPIError(f"Invalid JSON from {url}: {e}")

        if response.status_code == 404:
            logger.warning(f"Resource not found: {url}")
            return None

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(f"Rate limited on {url}", retry_after=retry_after)

        raise SetlistFMAPIError(
            f"API error: {response.status_code} - {response.text[:200]}",
            response.status_code
        )

    def get_artist_setlists(self, mbid: str, page: int = 1) -> Dict[str, Any]:
        """Get one page of setlists for an artist by MusicBrainz ID.

        setlist.fm answers 404 for pages past the end, which is reported
        here as an empty page.
        """
        endpoint = f"/artist/{mbid}/setlists"
        data = self._make_request(endpoint, params={"p": page})
        return data if data is not None else empty_page(page)
