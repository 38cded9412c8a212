"""Settings and application-data locations for episodematch."""
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

log = logging.getLogger(__name__)

APP_NAME = "EpisodeMatch"
HOME_ENV_VAR = "EPISODEMATCH_HOME"


# ---------------------------------------------------------------------------
# Platform-appropriate application-data directory
# ---------------------------------------------------------------------------

def app_data_dir() -> Path:
    """Return the application-data directory, creating it if needed.

    ``EPISODEMATCH_HOME`` overrides the platform default.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        d = Path(override)
    else:
        if sys.platform == "win32":
            base = Path(os.environ.get("APPDATA", Path.home()))
        elif sys.platform == "darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        d = base / APP_NAME
    d.mkdir(parents=True, exist_ok=True)
    return d


# ---------------------------------------------------------------------------
# Default values for every known key
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS: dict[str, Any] = {
    # TMDB
    "tmdb_api_key": "",
    "tmdb_language": "en-US",

    # Storage, relative to the app-data directory unless absolute
    "metadata_dir": "metadata",
    "plans_db": "plans.db",
    "cache_dir": "cache",
}


class SettingsManager:
    """Settings store backed by a JSON file.

    Usage:
        mgr = SettingsManager()
        key = mgr.get("tmdb_api_key")
        mgr.set("tmdb_language", "ja-JP")
        mgr.save()
    """

    def __init__(self, data_dir: Path | None = None):
        self.data_dir = data_dir or app_data_dir()
        self.settings_file = self.data_dir / "settings.json"
        self._data = self._load()

    # -- public API -------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        fallback = DEFAULT_SETTINGS.get(key, default)
        return self._data.get(key, fallback)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def save(self) -> bool:
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self.settings_file, e)
            return False

    def all(self) -> dict[str, Any]:
        """Return a merged view: defaults + saved values."""
        merged = DEFAULT_SETTINGS.copy()
        merged.update(self._data)
        return merged

    def reload(self) -> None:
        self._data = self._load()

    def path(self, key: str) -> Path:
        """Resolve a path-valued setting against the data directory."""
        value = Path(self.get(key))
        return value if value.is_absolute() else self.data_dir / value

    # -- private ----------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if self.settings_file.exists():
            try:
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                log.warning("Ignoring unreadable settings %s: %s", self.settings_file, e)
        return {}


def load_api_key(settings: SettingsManager | None = None) -> str | None:
    """
    Load the TMDB API key.

    Priority:
    1. TMDB_API_KEY environment variable
    2. .env file in current directory
    3. .env file in user home directory
    4. ``tmdb_api_key`` setting

    Returns:
        API key string or None if not found
    """
    api_key = os.environ.get("TMDB_API_KEY")
    if api_key:
        return api_key

    for env_path in (Path.cwd() / ".env", Path.home() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            api_key = os.environ.get("TMDB_API_KEY")
            if api_key:
                return api_key

    if settings is not None:
        return settings.get("tmdb_api_key") or None
    return None


def configure_logging(verbose: bool = False) -> None:
    """Route log records to stderr; DEBUG when *verbose*."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
