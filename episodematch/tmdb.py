"""TMDB API client: the remote season/episode catalog."""
import logging
import time

import requests

from .cache import Cache
from .models import TMDBEpisode, TMDBSeason, TMDBTvShow

log = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_TIMEOUT = 10
RATE_LIMIT_DELAY = 0.25  # 250ms between requests to avoid rate limiting
DEFAULT_LANGUAGE = "en-US"


class TMDBError(Exception):
    """Exception raised for TMDB API errors."""
    pass


def _year(date: str | None) -> int | None:
    if date and len(date) >= 4:
        try:
            return int(date[:4])
        except ValueError:
            return None
    return None


class TMDBClient:
    """Client for the TMDB TV endpoints."""

    def __init__(
        self,
        api_key: str | None,
        cache: Cache | None = None,
        language: str | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize TMDB client.

        Args:
            api_key: TMDB API key (see config.load_api_key).
            cache: Cache instance for storing lookups.
            language: TMDB API language tag (e.g. "en-US"). Falls back to
                      DEFAULT_LANGUAGE when *None*.
            session: Optional requests session (connection reuse, tests).

        Raises:
            TMDBError: If API key is missing
        """
        if not api_key:
            raise TMDBError(
                "TMDB API key not found.\n"
                "Set it using one of these methods:\n"
                "  1. Environment variable: export TMDB_API_KEY=your_key\n"
                "  2. Create a .env file with: TMDB_API_KEY=your_key\n"
                "Get your free API key at: https://www.themoviedb.org/settings/api"
            )
        self.api_key = api_key
        self.cache = cache or Cache()
        self.language = language or DEFAULT_LANGUAGE
        self.session = session or requests.Session()
        self._last_request_time = 0.0
        log.debug("Using TMDB language: %s", self.language)

    def _rate_limit(self) -> None:
        """Apply rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < RATE_LIMIT_DELAY:
            time.sleep(RATE_LIMIT_DELAY - elapsed)
        self._last_request_time = time.time()

    def _request(
        self,
        endpoint: str,
        params: dict | None = None,
        retries: int = 3
    ) -> dict | None:
        """
        Make a request to the TMDB API.

        Args:
            endpoint: API endpoint (e.g., '/tv/1399')
            params: Query parameters
            retries: Number of retries on failure

        Returns:
            JSON response, or None if the resource does not exist

        Raises:
            TMDBError: when every attempt failed
        """
        url = f"{TMDB_BASE_URL}{endpoint}"
        all_params = {
            "api_key": self.api_key,
            "language": self.language,
            **(params or {})
        }
        log_params = {k: v for k, v in all_params.items() if k != "api_key"}
        log.debug("GET %s params=%s", endpoint, log_params)

        last_error = "no attempt made"
        for attempt in range(retries):
            self._rate_limit()
            try:
                response = self.session.get(url, params=all_params, timeout=DEFAULT_TIMEOUT)
                log.debug("Response status: %s", response.status_code)

                if response.status_code == 429:  # Rate limited
                    retry_after = int(response.headers.get("Retry-After", 1))
                    log.debug("Rate limited, waiting %ss", retry_after)
                    time.sleep(retry_after)
                    last_error = "rate limited"
                    continue

                if response.status_code == 404:
                    return None

                response.raise_for_status()
                return response.json()

            except requests.exceptions.RequestException as e:
                last_error = str(e)
                log.debug("Request error: %s (attempt %d/%d)", e, attempt + 1, retries)
                if attempt < retries - 1:
                    time.sleep(1)

        raise TMDBError(f"TMDB request {endpoint} failed: {last_error}")

    def _get_cached_tv(self, tv_id: int) -> dict | None:
        cached = self.cache.get_tv_show(tv_id, self.language)
        if cached:
            return cached
        data = self._request(f"/tv/{tv_id}")
        if data:
            self.cache.set_tv_show(tv_id, self.language, data)
        return data

    def get_season(self, tv_id: int, season_number: int) -> TMDBSeason | None:
        """
        Get one season with its episodes.

        Returns:
            TMDBSeason if found, None otherwise
        """
        data = self.cache.get_season(tv_id, season_number, self.language)
        if not data:
            data = self._request(f"/tv/{tv_id}/season/{season_number}")
            if not data:
                return None
            self.cache.set_season(tv_id, season_number, self.language, data)

        episodes = [
            TMDBEpisode(
                series_id=tv_id,
                season_number=season_number,
                episode_number=ep["episode_number"],
                name=ep.get("name", ""),
                overview=ep.get("overview", ""),
            )
            for ep in data.get("episodes") or []
        ]
        return TMDBSeason(
            season_number=season_number,
            name=data.get("name", ""),
            episodes=episodes,
        )

    def get_tv_show(self, tv_id: int, include_episodes: bool = True) -> TMDBTvShow | None:
        """
        Get a TV show and its season/episode tree.

        Args:
            tv_id: TMDB series ID
            include_episodes: Fetch every season's episodes

        Returns:
            TMDBTvShow if found, None otherwise
        """
        data = self._get_cached_tv(tv_id)
        if not data:
            return None

        seasons = []
        for summary in data.get("seasons") or []:
            number = summary.get("season_number")
            if number is None:
                continue
            season = self.get_season(tv_id, number) if include_episodes else None
            if season is None:
                season = TMDBSeason(season_number=number, name=summary.get("name", ""))
            seasons.append(season)

        return TMDBTvShow(
            id=data["id"],
            name=data.get("name", ""),
            original_name=data.get("original_name", ""),
            first_air_year=_year(data.get("first_air_date")),
            overview=data.get("overview", ""),
            seasons=seasons,
        )
