"""
Configuration constants and the per-session settings for the gallery.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .exceptions import ConfigError

# --- Remote Search ---
# One listing call is issued per extension filter
EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif')
RESULTS_MAX_PER_EXTENSION = 200
RESULTS_MAX = 200  # new records a single scan may add, across all extensions
SEARCH_START = 0   # no deeper pagination is attempted

# --- Thumbnails & Cache ---
FILES_TO_SAVE = 25  # batch bound for both the thumbnail fetch and the cache pass
THUMBNAIL_SIZE = "w480h320"
THUMBNAIL_MODE = "strict"
CACHE_DIR = Path(__file__).resolve().parent.parent / "image_cache"

# --- Scheduling (milliseconds, as the host sends them) ---
DEFAULT_DATA_UPDATE_INTERVAL = 15 * 60 * 1000
DEFAULT_UPDATE_INTERVAL = 60 * 1000

# --- Workers ---
SEARCH_WORKERS = len(EXTENSIONS)
ENRICH_WORKERS = 4

# --- Host Protocol ---
CMD_INIT = "INIT"
CMD_GET = "GET"
NOTIFY_FILES = "FILES"
NOTIFY_ERROR = "ERROR"
ERR_MESSAGE = "The folder you chose doesn't exist or is empty. Please try a different one."


def normalize_folder(folder: Optional[str]) -> str:
    """Lower-cases and trims the folder; a non-empty path must start with '/'."""
    path = (folder or "").strip().lower()
    if path and not path.startswith("/"):
        path = f"/{path}"
    return path


def _interval(payload: Mapping[str, Any], key: str, default: int) -> int:
    value = payload.get(key)
    if value is None:
        return default
    # bool is an int subclass but never a sensible interval
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number of milliseconds, got {value!r}")
    try:
        ms = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number of milliseconds, got {value!r}")
    if ms <= 0:
        raise ConfigError(f"{key} must be positive, got {ms}")
    return ms


@dataclass
class GalleryConfig:
    """
    Settings sent by the host with the INIT command.

    Intervals are kept in milliseconds to match the host protocol;
    use the *_seconds properties when arming timers.
    """
    folder: str = ""
    data_update_interval: int = DEFAULT_DATA_UPDATE_INTERVAL
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    cache_dir: Path = CACHE_DIR

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]], cache_dir: Optional[Path] = None) -> "GalleryConfig":
        payload = payload or {}
        if not isinstance(payload, Mapping):
            raise ConfigError(f"INIT payload must be a mapping, got {type(payload).__name__}")

        folder = payload.get("folder")
        if folder is not None and not isinstance(folder, str):
            raise ConfigError(f"folder must be a string, got {folder!r}")

        return cls(
            folder=normalize_folder(folder),
            data_update_interval=_interval(payload, "dataUpdateInterval", DEFAULT_DATA_UPDATE_INTERVAL),
            update_interval=_interval(payload, "updateInterval", DEFAULT_UPDATE_INTERVAL),
            cache_dir=Path(cache_dir) if cache_dir else CACHE_DIR,
        )

    @property
    def data_update_seconds(self) -> float:
        return self.data_update_interval / 1000.0

    @property
    def update_seconds(self) -> float:
        return self.update_interval / 1000.0
