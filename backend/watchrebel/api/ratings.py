"""Rating endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from watchrebel.api.deps import get_current_user, rating_service
from watchrebel.api.schemas import RatingBody, RatingUpdate
from watchrebel.domain import MediaRef
from watchrebel.models.tables import Rating, User
from watchrebel.services.ratings import RatingService

router = APIRouter()


def _rating_dict(rating: Rating) -> dict:
    return {
        "id": rating.id,
        "userId": rating.user_id,
        "tmdbId": rating.tmdb_id,
        "mediaType": rating.media_type,
        "rating": rating.rating,
        "createdAt": rating.created_at.isoformat(),
        "updatedAt": rating.updated_at.isoformat(),
    }


@router.post("/ratings")
async def rate(
    body: RatingBody,
    response: Response,
    user: User = Depends(get_current_user),
    service: RatingService = Depends(rating_service),
):
    """Create or update the caller's rating. 201 on first rating, 200 on update."""
    ref = MediaRef(body.tmdb_id, body.media_type)
    rating, created = await service.rate(user.id, ref, body.rating)
    response.status_code = 201 if created else 200
    return {"rating": _rating_dict(rating), "created": created}


@router.put("/ratings/{rating_id}")
async def update_rating(
    rating_id: str,
    body: RatingUpdate,
    user: User = Depends(get_current_user),
    service: RatingService = Depends(rating_service),
):
    rating = await service.update(user.id, rating_id, body.rating)
    return {"rating": _rating_dict(rating)}


@router.get("/ratings/user/{user_id}")
async def get_user_ratings(
    user_id: str,
    media_type: Optional[str] = Query(None, alias="mediaType"),
    user: User = Depends(get_current_user),
    service: RatingService = Depends(rating_service),
):
    ratings = await service.get_user_ratings(user_id, media_type)
    return {"ratings": [_rating_dict(r) for r in ratings]}
