"""Custom list endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from watchrebel.api.deps import get_current_user, membership_service
from watchrebel.api.schemas import ListCreate, ListRename, MediaBody
from watchrebel.domain import MediaRef
from watchrebel.models.tables import CustomList, ListItem, User
from watchrebel.services.catalog import describe_many
from watchrebel.services.membership import MembershipService

router = APIRouter()


def _list_dict(custom_list: CustomList, item_count: int = 0) -> dict:
    return {
        "id": custom_list.id,
        "userId": custom_list.user_id,
        "name": custom_list.name,
        "mediaType": custom_list.media_type,
        "itemCount": item_count,
        "createdAt": custom_list.created_at.isoformat(),
    }


def _item_dict(item: ListItem) -> dict:
    return {
        "id": item.id,
        "listId": item.list_id,
        "tmdbId": item.tmdb_id,
        "mediaType": item.media_type,
        "addedAt": item.added_at.isoformat(),
    }


@router.get("/lists")
async def get_lists(
    media_type: Optional[str] = Query(None, alias="mediaType"),
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    lists = await service.get_lists(user.id, media_type)
    counts = await service.count_items([l.id for l in lists])
    return {"lists": [_list_dict(l, counts.get(l.id, 0)) for l in lists]}


@router.post("/lists", status_code=201)
async def create_list(
    body: ListCreate,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    custom_list = await service.create_list(user.id, body.name, body.media_type)
    return {"list": _list_dict(custom_list)}


@router.put("/lists/{list_id}")
async def rename_list(
    list_id: str,
    body: ListRename,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    custom_list = await service.rename_list(user.id, list_id, body.name)
    return {"list": _list_dict(custom_list)}


@router.delete("/lists/{list_id}")
async def delete_list(
    list_id: str,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    await service.delete_list(user.id, list_id)
    return {"message": "Список удален"}


@router.get("/lists/{list_id}/items")
async def get_list_items(
    list_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    """List entries enriched with catalog details (title, poster, year)."""
    items = await service.get_list_items(user.id, list_id)
    details = await describe_many(
        request.app.state.catalog, [MediaRef(i.tmdb_id, i.media_type) for i in items],
    )
    return {"items": [{**_item_dict(i), **d} for i, d in zip(items, details)]}


@router.post("/lists/{list_id}/items", status_code=201)
async def add_to_list(
    list_id: str,
    body: MediaBody,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    """Add an item; it is moved here if it was in another list or the watchlist."""
    ref = MediaRef(body.tmdb_id, body.media_type)
    item = await service.add_to_list(user.id, list_id, ref)
    return {"item": _item_dict(item)}


@router.delete("/lists/{list_id}/items/{item_id}")
async def remove_from_list(
    list_id: str,
    item_id: str,
    user: User = Depends(get_current_user),
    service: MembershipService = Depends(membership_service),
):
    await service.remove_from_list(user.id, list_id, item_id)
    return {"message": "Элемент удален из списка"}
