"""Configuration constants for the stream harvester."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("HARVEST_DATA_DIR", "data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
OUTPUT_DIR: Path = Path(os.getenv("HARVEST_OUTPUT_DIR", str(DATA_DIR / "output")))
CHECKPOINT_PATH: Path = DATA_DIR / "checkpoints.json"
RUNS_DIR: Path = DATA_DIR / "runs"

BASE_URL: str = os.getenv("HARVEST_BASE_URL", "https://stocktwits.com").rstrip("/")
LANDING_URL_TEMPLATE: str = BASE_URL + "/symbol/{symbol}"
INITIAL_URL_TEMPLATE: str = (
    BASE_URL
    + "/streams/stream?stream=symbol&stream_id={stream_id}"
    "&substream=all&username=undefined&symbol=undefined"
)
CONTINUATION_URL_TEMPLATE: str = (
    BASE_URL + "/streams/poll?stream=symbol&stream_id={stream_id}&substream=all&max={max_id}"
)

DEFAULT_SYMBOL: str = os.getenv("HARVEST_SYMBOL", "AAPL").strip().upper() or "AAPL"
DEFAULT_BOUNDARY_DATE: str = os.getenv("HARVEST_BOUNDARY_DATE", "2014-11-11")

# -1 keeps retrying forever.
UNLIMITED_RETRIES: int = -1

REQUEST_DELAY_MS: int = int(os.getenv("HARVEST_REQUEST_DELAY_MS", "500"))
RETRY_BUDGET: int = int(os.getenv("HARVEST_RETRY_BUDGET", "5"))
MAX_PARALLEL_REQUESTS: int = int(os.getenv("HARVEST_MAX_PARALLEL_REQUESTS", "2"))


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Per-request HTTP timeout.
REQUEST_TIMEOUT_SECONDS: int = _parse_timeout_seconds("HARVEST_REQUEST_TIMEOUT_SECONDS", 30)
# How long a poll waits for the bootstrap to publish the token and stream id.
READINESS_TIMEOUT_SECONDS: int = _parse_timeout_seconds("HARVEST_READINESS_TIMEOUT_SECONDS", 120)

USER_AGENT: str = os.getenv(
    "HARVEST_USER_AGENT",
    "Mozilla/5.0 (Windows NT 6.1) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/41.0.2228.0 Safari/537.36",
)

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}

CSRF_HEADER: str = "x-csrf-token"
AJAX_HEADER: str = "x-requested-with"
AJAX_HEADER_VALUE: str = "XMLHttpRequest"

TOKEN_SELECTOR: str = "meta[name=csrf-token]"
TOKEN_ATTRIBUTE: str = "content"
STREAM_SELECTOR: str = "ol.stream-list"
STREAM_ATTRIBUTE: str = "stream-id"

OUTPUT_HEADER: tuple[str, ...] = ("Id", "CreatedAt", "Body", "Sentiment", "Likes")
NEUTRAL_SENTIMENT: str = "Neutral"


def output_path_for(symbol: str, output_dir: Path | None = None) -> Path:
    """Return the tab-delimited output file for ``symbol``."""

    return Path(output_dir or OUTPUT_DIR) / f"{symbol.strip().upper()}.csv"


def is_unlimited(retry_budget: int) -> bool:
    """Return ``True`` when ``retry_budget`` is the unlimited sentinel."""

    return int(retry_budget) == UNLIMITED_RETRIES
