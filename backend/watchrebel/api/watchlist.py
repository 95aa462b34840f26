"""Watchlist endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from watchrebel.api.deps import get_current_user, membership_service
from watchrebel.api.schemas import MediaBody
from watchrebel.domain import MediaRef
from watchrebel.models.tables import User, WatchlistEntry
from watchrebel.services.catalog import describe_many
from watchrebel.services.membership import MembershipService

router = APIRouter()


def _entry_dict(entry: WatchlistEntry) -> dict:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "tmdbId": entry.tmdb_id,
        "mediaType": entry.media_type,
        "addedAt": entry.added_at.isoformat(),
    }


@router.get("/watchlist")
async def get_watchlist(
    request: Request,
    media_type: Optional[str] = Query(None, alias="mediaType"),
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    entries = await service.get_watchlist(user.id, media_type)
    details = await describe_many(
        request.app.state.catalog, [MediaRef(e.tmdb_id, e.media_type) for e in entries],
    )
    return {"items": [{**_entry_dict(e), **d} for e, d in zip(entries, details)]}


@router.post("/watchlist", status_code=201)
async def add_to_watchlist(
    body: MediaBody,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    ref = MediaRef(body.tmdb_id, body.media_type)
    entry = await service.add_to_watchlist(user.id, ref)
    return {"item": _entry_dict(entry)}


@router.delete("/watchlist/{item_id}")
async def remove_from_watchlist(
    item_id: str,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    await service.remove_from_watchlist(user.id, item_id)
    return {"message": "Элемент удален из списка желаемого"}
