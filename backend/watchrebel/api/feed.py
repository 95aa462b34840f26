"""Friends feed endpoint."""

from fastapi import APIRouter, Depends

from watchrebel.api.deps import get_current_user, social_service, wall_service
from watchrebel.models.tables import User
from watchrebel.services.social import SocialService
from watchrebel.services.wall import WallService

router = APIRouter()


@router.get("/feed/{user_id}")
async def get_feed(
    user_id: str,
    user: User = Depends(get_current_user),
    social: SocialService = Depends(social_service),
    wall: WallService = Depends(wall_service),
):
    """Latest text posts from the caller and the users they follow."""
    return {"posts": await social.get_feed(user.id, user_id, wall)}
