"""Catalog lookups that degrade instead of failing.

The catalog is optional (no TMDB credentials configured) and unreliable
(network, rate limits); callers get placeholders rather than errors.
"""

import asyncio
import logging
from typing import Optional

from watchrebel.clients.base import IMediaCatalog, MediaDetails
from watchrebel.domain import MediaRef

logger = logging.getLogger(__name__)


async def fetch_details(catalog: Optional[IMediaCatalog], ref: MediaRef) -> Optional[MediaDetails]:
    if catalog is None:
        return None
    try:
        return await catalog.get_details(ref.media_type.value, ref.tmdb_id)
    except Exception as e:
        logger.error(f"Catalog lookup failed for {ref.media_type.value}/{ref.tmdb_id}: {e}")
        return None


async def lookup_title(catalog: Optional[IMediaCatalog], ref: MediaRef) -> str:
    """Title from the catalog, or ``контент #<id>`` if it is unavailable."""
    details = await fetch_details(catalog, ref)
    if details is None or not details.title:
        return ref.placeholder_title
    return details.title


async def describe_many(catalog: Optional[IMediaCatalog], refs: list[MediaRef]) -> list[dict]:
    """Display fields for each ref, in order. Unknown items get neutral values."""
    details = await asyncio.gather(*(fetch_details(catalog, ref) for ref in refs))
    return [
        {
            "title": d.title if d else "Неизвестно",
            "posterPath": d.poster_path if d else None,
            "releaseYear": d.release_year if d else None,
            "voteAverage": (d.vote_average or 0) if d else 0,
            "overview": d.overview if d else None,
        }
        for d in details
    ]
