"""TMDB client: title lookup for notifications and wall posts, plus the
search, popular, discover and genre endpoints behind the catalog pages.

Every request goes through the injected ``RequestThrottle`` so the whole
process stays under TMDB's rate limit, whichever service is calling.
"""

import asyncio
import logging
from typing import Optional

import httpx

from watchrebel.clients.base import IMediaCatalog, MediaDetails
from watchrebel.clients.throttle import RequestThrottle
from watchrebel.errors import NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)


class TmdbError(UpstreamUnavailable):
    """TMDB request failed after retries or returned an error status."""


class TmdbClient(IMediaCatalog):
    """The Movie Database API v3 client."""

    BASE_URL = "https://api.themoviedb.org/3"
    MAX_RETRIES = 3

    def __init__(
        self,
        api_key: str,
        throttle: RequestThrottle,
        language: str = "ru-RU",
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.throttle = throttle
        self.language = language
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._transport = transport
        # Detect auth mode: JWT (v4 bearer) vs plain key (v3 query param)
        self._is_bearer = api_key.startswith("eyJ")

    async def _request(self, path: str, params: dict) -> dict:
        headers = {}
        if self._is_bearer:
            headers["Authorization"] = f"Bearer {self.api_key}"
        else:
            params["api_key"] = self.api_key

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            resp = await client.get(f"{self.base_url}{path}", params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()

    async def _get(self, path: str, params: dict | None = None) -> dict:
        """Throttled GET; network errors are retried with exponential backoff."""
        all_params = {"language": self.language, **(params or {})}

        for attempt in range(self.MAX_RETRIES + 1):
            try:
                return await self.throttle.run(lambda: self._request(path, dict(all_params)))
            except httpx.TransportError as e:
                if attempt == self.MAX_RETRIES:
                    raise TmdbError(f"TMDB unreachable for {path}: {e}") from e
                delay = min(2 ** attempt, 5)
                logger.warning(f"TMDB network error on {path} ({e}); retry {attempt + 1}/{self.MAX_RETRIES} in {delay}s")
                await asyncio.sleep(delay)
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    raise NotFound("Контент не найден", "NOT_FOUND") from e
                raise TmdbError(f"TMDB {e.response.status_code} for {path}") from e

    # ── IMediaCatalog implementation ─────────────────────────────

    async def get_details(self, media_type: str, tmdb_id: int) -> MediaDetails:
        if media_type == "movie":
            data = await self._get(f"/movie/{tmdb_id}")
            return self._normalize(data, "movie", title_key="title", date_key="release_date")
        if media_type == "tv":
            data = await self._get(f"/tv/{tmdb_id}")
            return self._normalize(data, "tv", title_key="name", date_key="first_air_date")
        raise ValueError(f"Unknown media type: {media_type}")

    async def get_full_details(self, media_type: str, tmdb_id: int) -> dict:
        return await self._get(
            f"/{self._kind(media_type)}/{tmdb_id}",
            {"append_to_response": "credits,videos,images"},
        )

    # ── Search ───────────────────────────────────────────────────

    async def search(self, media_type: str, query: str, page: int = 1) -> dict:
        return await self._get(
            f"/search/{self._kind(media_type)}",
            {"query": query, "page": page, "include_adult": "false"},
        )

    # ── Discovery ────────────────────────────────────────────────

    async def get_popular(self, media_type: str, page: int = 1) -> dict:
        return await self._get(f"/{self._kind(media_type)}/popular", {"page": page})

    async def discover(
        self,
        media_type: str,
        page: int = 1,
        sort_by: str = "popularity.desc",
        genres: Optional[str] = None,
        year: Optional[int] = None,
        min_rating: Optional[float] = None,
    ) -> dict:
        """Discover with filters; the release-year parameter differs per kind."""
        kind = self._kind(media_type)
        params = {"page": page, "sort_by": sort_by}
        if genres:
            params["with_genres"] = genres
        if year:
            params["primary_release_year" if kind == "movie" else "first_air_date_year"] = year
        if min_rating:
            params["vote_average.gte"] = min_rating
        return await self._get(f"/discover/{kind}", params)

    # ── Genre lists ──────────────────────────────────────────────

    async def get_genres(self, media_type: str) -> list[dict]:
        data = await self._get(f"/genre/{self._kind(media_type)}/list")
        return data.get("genres", [])

    @staticmethod
    def _kind(media_type: str) -> str:
        if media_type not in ("movie", "tv"):
            raise ValueError(f"Unknown media type: {media_type}")
        return media_type

    @staticmethod
    def _normalize(data: dict, media_type: str, title_key: str, date_key: str) -> MediaDetails:
        released = data.get(date_key) or ""
        return MediaDetails(
            tmdb_id=data["id"],
            media_type=media_type,
            title=data.get(title_key, ""),
            release_year=int(released[:4]) if released[:4].isdigit() else None,
            poster_path=data.get("poster_path"),
            vote_average=data.get("vote_average"),
            overview=data.get("overview") or "",
        )
