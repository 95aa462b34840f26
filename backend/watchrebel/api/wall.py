"""Wall and reaction endpoints."""

from fastapi import APIRouter, Depends, Response

from watchrebel.api.deps import get_current_user, wall_service
from watchrebel.api.schemas import PostCreate, PostEdit, ReactionBody
from watchrebel.models.tables import User
from watchrebel.services.wall import WallService

router = APIRouter()


@router.get("/wall/post/{post_id}")
async def get_post(
    post_id: str,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    post = await service.get_post(post_id)
    return {"post": (await service.serialize([post]))[0]}


@router.get("/wall/{user_id}")
async def get_wall(
    user_id: str,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    return {"posts": await service.get_wall(user_id)}


@router.post("/wall", status_code=201)
async def create_post(
    body: PostCreate,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    """Post on the caller's wall, or on ``targetUserId``'s wall if their privacy allows it."""
    post = await service.create_post(
        user,
        body.post_type,
        content=body.content,
        tmdb_id=body.tmdb_id,
        media_type=body.media_type,
        rating=body.rating,
        wall_owner_id=body.target_user_id,
    )
    return {"post": (await service.serialize([post]))[0]}


@router.put("/wall/{post_id}")
async def edit_post(
    post_id: str,
    body: PostEdit,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    post = await service.edit_post(user, post_id, body.content)
    return {"post": (await service.serialize([post]))[0]}


@router.delete("/wall/{post_id}")
async def delete_post(
    post_id: str,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    await service.delete_post(user.id, post_id)
    return {"message": "Пост удален"}


@router.post("/wall/{post_id}/reactions")
async def react(
    post_id: str,
    body: ReactionBody,
    response: Response,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    reaction, created = await service.react(user.id, post_id, body.emoji)
    response.status_code = 201 if created else 200
    return {
        "reaction": {
            "id": reaction.id,
            "postId": reaction.post_id,
            "userId": reaction.user_id,
            "emoji": reaction.emoji,
            "createdAt": reaction.created_at.isoformat(),
        },
        "created": created,
    }


@router.delete("/wall/{post_id}/reactions/{reaction_id}")
async def remove_reaction(
    post_id: str,
    reaction_id: str,
    user: User = Depends(get_current_user),
    service: WallService = Depends(wall_service),
):
    await service.remove_reaction(user.id, post_id, reaction_id)
    return {"message": "Реакция удалена"}
