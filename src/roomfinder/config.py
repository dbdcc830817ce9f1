"""Configuration constants for roomfinder."""

from pathlib import Path

# Hierarchy cache validity. Entries older than this are never served.
CACHE_TTL_SECONDS: float = 5 * 60

# Pause in typing before a search runs.
DEBOUNCE_DELAY_SECONDS: float = 0.3

# Grid width of the entity screens. 1 means plain up/down list navigation.
DEFAULT_COLUMNS: int = 3

# Remote store location and key. Environment wins over key files.
STORE_URL_ENV: str = "ROOMFINDER_STORE_URL"
STORE_KEY_ENV: str = "ROOMFINDER_STORE_KEY"

# Store key location. First file found is used.
STORE_KEY_FILES: list[Path] = [
    Path("~/.config/roomfinder-key.txt").expanduser(),
    Path("~/.config/secret/roomfinder-key.txt").expanduser(),
]

# Directory with the cache database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/roomfinder").expanduser(),
    Path("~/.roomfinder").expanduser(),
    Path("/tmp/roomfinder"),
]

CACHE_DB_NAME: str = "cache.db"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
