import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPAI_DATA_DIR", Path.home() / ".local" / "share" / "clipai"))
DB_PATH = DATA_DIR / "clipboard.db"
LOG_PATH = DATA_DIR / "clipai.log"
SETTINGS_PATH = DATA_DIR / "config.json"

POLL_INTERVAL = 0.5  # seconds between clipboard checks
PAGE_SIZE = 50  # items fetched per load-more request
MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
MAX_IMAGE_SIZE = 10_000_000  # 10MB image limit
PREVIEW_LENGTH = 60  # characters shown in listings

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_TIMEOUT = 10.0  # seconds, bounds the capture tick
EMBEDDING_MAX_RETRIES = 0

DEFAULT_GLOBAL_SHORTCUT = "CommandOrControl+Shift+V"
DEFAULT_RETENTION_DAYS = 30
ARCHIVE_SWEEP_INTERVAL = 3600  # seconds between periodic archive sweeps
MS_PER_DAY = 86_400_000


def _parse_history_cache_size() -> int:
    raw = os.environ.get("CLIPAI_HISTORY_CACHE_SIZE")
    if raw is None:
        return 100
    try:
        value = int(raw)
    except ValueError:
        return 100
    return max(10, min(1000, value))


HISTORY_CACHE_SIZE = _parse_history_cache_size()
