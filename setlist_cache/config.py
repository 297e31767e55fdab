"""Configuration and constants for setlist cache building."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_CACHE_DIR = PROJECT_ROOT / "data" / "cache"

# API Configuration
SETLISTFM_API_KEY = os.getenv("SETLISTFM_API_KEY")
SETLISTFM_BASE_URL = os.getenv("SETLISTFM_BASE_URL", "https://api.setlist.fm/rest/1.0")
REQUEST_TIMEOUT_SECONDS = 20

# Artist Configuration (Unknown Mortal Orchestra)
ARTIST_MBID = os.getenv("ARTIST_MBID", "e2305342-0bde-4a2c-aed0-4b88694834de")

# Snapshot
SNAPSHOT_PATH = Path(os.getenv("SNAPSHOT_PATH", str(DATA_CACHE_DIR / "setlist-cache.json")))
STALE_AFTER_HOURS = 18

# Pagination
ITEMS_PER_PAGE = 20
DEFAULT_PAGE_LIMIT = 20

# Ingestion limits
MAX_PAGES = 300
MAX_CONSECUTIVE_EMPTY_PAGES = 15
MAX_CONSECUTIVE_ERRORS = 5

# Rate Limiting (seconds)
SUCCESS_DELAY_SECONDS = 2
EMPTY_PAGE_DELAY_SECONDS = 1
EXCEPTION_DELAY_SECONDS = 3
HTTP_ERROR_DELAY_SECONDS = 5
RATE_LIMIT_FALLBACK_SECONDS = 60

# Setlist date format used by setlist.fm (dd-MM-yyyy)
EVENT_DATE_FORMAT = "%d-%m-%Y"

# Song entries containing any of these are treated as non-song content
NON_SONG_TOKENS = ("medley", "intro", "outro", "jam", "reprise")
