"""Catalog browsing endpoints. Public: no caller identity needed."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from watchrebel.api.deps import catalog_browser
from watchrebel.services.browse import CatalogBrowser

router = APIRouter()


@router.get("/media/popular")
async def popular(
    media_type: str = Query("all", alias="type"),
    page: int = 1,
    browser: CatalogBrowser = Depends(catalog_browser),
):
    return await browser.popular(media_type, page)


@router.get("/media/discover")
async def discover(
    media_type: Optional[str] = Query(None, alias="type"),
    page: int = 1,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    genres: Optional[str] = None,
    year: Optional[int] = None,
    min_rating: Optional[float] = Query(None, alias="minRating"),
    browser: CatalogBrowser = Depends(catalog_browser),
):
    return await browser.discover(
        media_type, page=page, sort_by=sort_by, genres=genres, year=year, min_rating=min_rating,
    )


@router.get("/media/genres")
async def genres(
    media_type: str = Query("all", alias="type"),
    browser: CatalogBrowser = Depends(catalog_browser),
):
    return await browser.genres(media_type)


@router.get("/media/search")
async def search(
    query: Optional[str] = None,
    media_type: str = Query("all", alias="type"),
    page: int = 1,
    browser: CatalogBrowser = Depends(catalog_browser),
):
    return await browser.search(query, media_type, page)


@router.get("/media/{media_type}/{tmdb_id}")
async def get_details(
    media_type: str,
    tmdb_id: str,
    browser: CatalogBrowser = Depends(catalog_browser),
):
    """Full TMDB payload with credits, videos, images and absolute image URLs."""
    return await browser.details(media_type, tmdb_id)


@router.get("/media/{media_type}/{tmdb_id}/images")
async def get_images(
    media_type: str,
    tmdb_id: str,
    browser: CatalogBrowser = Depends(catalog_browser),
):
    return await browser.images(media_type, tmdb_id)
