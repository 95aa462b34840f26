"""Catalog browsing: popular titles, search, discover, genres, details.

Payloads come from TMDB unchanged apart from the absolute image URLs added
here. Listing endpoints that cover both kinds tolerate one kind failing:
its list is simply left empty.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from watchrebel.clients.base import IMediaCatalog
from watchrebel.domain import MediaType
from watchrebel.errors import UpstreamUnavailable, ValidationError

logger = logging.getLogger(__name__)

IMAGE_BASE = "https://image.tmdb.org/t/p"

_RESULT_KEYS = {"movie": ("movies", "Movie"), "tv": ("tv", "TV")}


def image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
    """Build a full image URL from a TMDB file path."""
    if not path:
        return None
    return f"{IMAGE_BASE}/{size}{path}"


def _kinds(kind: Optional[str]) -> list[str]:
    """``movie``, ``tv`` or ``all`` (the default) → media kinds to query."""
    if kind in (None, "", "all"):
        return [MediaType.MOVIE.value, MediaType.TV.value]
    if kind in (MediaType.MOVIE.value, MediaType.TV.value):
        return [kind]
    raise ValidationError("Параметр type должен быть movie, tv или all", "INVALID_TYPE")


def _single_kind(kind: Optional[str]) -> str:
    if kind not in (MediaType.MOVIE.value, MediaType.TV.value):
        raise ValidationError("Параметр type обязателен и должен быть movie или tv", "INVALID_TYPE")
    return kind


def _parse_id(raw) -> int:
    try:
        tmdb_id = int(raw)
    except (TypeError, ValueError):
        tmdb_id = 0
    if tmdb_id <= 0:
        raise ValidationError("ID должен быть положительным числом", "INVALID_ID")
    return tmdb_id


def _with_urls(image: dict) -> dict:
    return {
        **image,
        "url_w500": image_url(image.get("file_path"), "w500"),
        "url_original": image_url(image.get("file_path"), "original"),
    }


class CatalogBrowser:
    def __init__(self, catalog: Optional[IMediaCatalog]):
        self.catalog = catalog

    def _require_catalog(self) -> IMediaCatalog:
        if self.catalog is None:
            raise UpstreamUnavailable("Каталог TMDB не настроен", "CATALOG_UNAVAILABLE")
        return self.catalog

    async def _per_kind(self, kinds: list[str], fetch: Callable[[str], Awaitable]) -> dict:
        async def tolerant(kind: str):
            try:
                return await fetch(kind)
            except Exception as e:
                logger.error(f"Catalog request for {kind} failed: {e}")
                return None

        return dict(zip(kinds, await asyncio.gather(*(tolerant(k) for k in kinds))))

    async def _paged(self, kinds: list[str], fetch: Callable[[str], Awaitable[dict]]) -> dict:
        result = {"movies": [], "tv": []}
        for kind, page in (await self._per_kind(kinds, fetch)).items():
            if page is None:
                continue
            key, label = _RESULT_KEYS[kind]
            result[key] = page.get("results", [])
            result[f"total{label}Pages"] = page.get("total_pages")
            result[f"total{label}Results"] = page.get("total_results")
        return result

    # ── Listings ─────────────────────────────────────────────────

    async def popular(self, kind: Optional[str] = "all", page: int = 1) -> dict:
        kinds = _kinds(kind)
        catalog = self._require_catalog()
        result = await self._paged(kinds, lambda k: catalog.get_popular(k, page))
        return {**result, "page": page}

    async def search(self, query: Optional[str], kind: Optional[str] = "all", page: int = 1) -> dict:
        text = (query or "").strip()
        if not text:
            raise ValidationError("Параметр query обязателен", "MISSING_QUERY")
        kinds = _kinds(kind)
        catalog = self._require_catalog()
        result = await self._paged(kinds, lambda k: catalog.search(k, text, page))
        return {**result, "page": page, "query": text}

    async def discover(
        self,
        kind: Optional[str],
        page: int = 1,
        sort_by: Optional[str] = None,
        genres: Optional[str] = None,
        year: Optional[int] = None,
        min_rating: Optional[float] = None,
    ) -> dict:
        """Filtered listing for one kind. Upstream failures are not swallowed here."""
        media_type = _single_kind(kind)
        return await self._require_catalog().discover(
            media_type,
            page=page,
            sort_by=sort_by or "popularity.desc",
            genres=genres,
            year=year,
            min_rating=min_rating,
        )

    async def genres(self, kind: Optional[str] = "all") -> dict:
        kinds = _kinds(kind)
        found = await self._per_kind(kinds, self._require_catalog().get_genres)
        return {"movieGenres": found.get("movie") or [], "tvGenres": found.get("tv") or []}

    # ── Single title ─────────────────────────────────────────────

    async def details(self, kind: Optional[str], raw_id) -> dict:
        media_type = _single_kind(kind)
        tmdb_id = _parse_id(raw_id)
        data = dict(await self._require_catalog().get_full_details(media_type, tmdb_id))
        if data.get("poster_path"):
            data["poster_url"] = image_url(data["poster_path"], "w500")
            data["poster_url_original"] = image_url(data["poster_path"], "original")
        if data.get("backdrop_path"):
            data["backdrop_url"] = image_url(data["backdrop_path"], "w1280")
            data["backdrop_url_original"] = image_url(data["backdrop_path"], "original")
        return data

    async def images(self, kind: Optional[str], raw_id) -> dict:
        media_type = _single_kind(kind)
        tmdb_id = _parse_id(raw_id)
        data = await self._require_catalog().get_full_details(media_type, tmdb_id)
        images = data.get("images") or {}
        return {
            "id": tmdb_id,
            "type": media_type,
            "backdrops": [_with_urls(i) for i in images.get("backdrops") or []],
            "posters": [_with_urls(i) for i in images.get("posters") or []],
            "logos": [_with_urls(i) for i in images.get("logos") or []],
        }
