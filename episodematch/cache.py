"""Cache module for storing TMDB catalog lookups locally."""
import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

CACHE_FILE = "tmdb_cache.json"


class Cache:
    """Local JSON cache for TMDB show and season payloads."""

    def __init__(self, cache_dir: Path | None = None):
        """
        Initialize the cache.

        Args:
            cache_dir: Directory to store cache file. Defaults to current directory.
        """
        if cache_dir is None:
            cache_dir = Path.cwd()
        self.cache_path = cache_dir / CACHE_FILE
        self._cache: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        """Load cache from disk."""
        if self.cache_path.exists():
            try:
                with open(self.cache_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError):
                return self._empty_cache()
        return self._empty_cache()

    def _empty_cache(self) -> dict[str, Any]:
        """Return empty cache structure."""
        return {
            "tv_shows": {},
            "seasons": {},
        }

    def _save(self) -> None:
        """Save cache to disk."""
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, 'w', encoding='utf-8') as f:
                json.dump(self._cache, f, indent=2, ensure_ascii=False)
        except OSError as e:
            # The cache is an optimisation; lookups still work without it.
            log.warning("Could not write cache %s: %s", self.cache_path, e)

    def _key(self, *parts: Any) -> str:
        return ":".join(str(p).lower() for p in parts)

    def get_tv_show(self, tv_id: int, language: str) -> dict | None:
        """Get a cached /tv/{id} payload."""
        return self._cache["tv_shows"].get(self._key(tv_id, language))

    def set_tv_show(self, tv_id: int, language: str, data: dict) -> None:
        self._cache["tv_shows"][self._key(tv_id, language)] = data
        self._save()

    def get_season(self, tv_id: int, season: int, language: str) -> dict | None:
        """Get a cached /tv/{id}/season/{n} payload."""
        return self._cache["seasons"].get(self._key(tv_id, f"s{season}", language))

    def set_season(self, tv_id: int, season: int, language: str, data: dict) -> None:
        self._cache["seasons"][self._key(tv_id, f"s{season}", language)] = data
        self._save()
