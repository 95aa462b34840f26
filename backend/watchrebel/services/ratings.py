"""Ratings: one 1–10 score per (user, media), upserted.

A first-time rating also drops a ``rating`` post on the rater's own wall.
Every successful rate call fans out a ``rated`` event to friends.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.clients.base import IMediaCatalog
from watchrebel.domain import ActivityKind, ActivityMedia, MediaRef, MediaType, PostType, parse_rating
from watchrebel.errors import Forbidden, NotFound
from watchrebel.models.tables import Rating, WallPost, utcnow
from watchrebel.services.catalog import lookup_title
from watchrebel.services.locks import KeyedLocks
from watchrebel.services.notifier import FanoutNotifier

logger = logging.getLogger(__name__)


class RatingService:
    def __init__(
        self,
        db: AsyncSession,
        locks: KeyedLocks,
        notifier: Optional[FanoutNotifier] = None,
        catalog: Optional[IMediaCatalog] = None,
    ):
        self.db = db
        self.locks = locks
        self.notifier = notifier
        self.catalog = catalog

    async def rate(self, user_id: str, ref: MediaRef, value) -> tuple[Rating, bool]:
        """Upsert a rating. Returns (rating, created)."""
        score = parse_rating(value)

        async with self.locks.hold(user_id):
            rating = await self.db.scalar(
                select(Rating).where(
                    Rating.user_id == user_id,
                    Rating.tmdb_id == ref.tmdb_id,
                    Rating.media_type == ref.media_type.value,
                )
            )
            created = rating is None
            if created:
                rating = Rating(user_id=user_id, tmdb_id=ref.tmdb_id, media_type=ref.media_type.value, rating=score)
                self.db.add(rating)
                self.db.add(WallPost(
                    user_id=user_id,
                    wall_owner_id=user_id,
                    post_type=PostType.RATING.value,
                    tmdb_id=ref.tmdb_id,
                    media_type=ref.media_type.value,
                    rating=score,
                ))
            else:
                rating.rating = score
                rating.updated_at = utcnow()
            await self.db.commit()

        logger.info(f"User {user_id} rated {ref.media_type.value}/{ref.tmdb_id} {score}/10 ({'new' if created else 'update'})")
        await self._announce(user_id, ref, score)
        return rating, created

    async def update(self, user_id: str, rating_id: str, value) -> Rating:
        score = parse_rating(value)
        rating = await self.db.get(Rating, rating_id)
        if rating is None:
            raise NotFound("Рейтинг не найден", "RATING_NOT_FOUND")
        if rating.user_id != user_id:
            raise Forbidden("Нет прав на изменение этого рейтинга", "FORBIDDEN")
        rating.rating = score
        rating.updated_at = utcnow()
        await self.db.commit()
        return rating

    async def get_user_ratings(self, user_id: str, media_type: Optional[str] = None) -> list[Rating]:
        query = select(Rating).where(Rating.user_id == user_id)
        if media_type in (MediaType.MOVIE.value, MediaType.TV.value):
            query = query.where(Rating.media_type == media_type)
        rows = await self.db.execute(query.order_by(Rating.updated_at.desc()))
        return list(rows.scalars().all())

    async def _announce(self, user_id: str, ref: MediaRef, score: int):
        if self.notifier is None:
            return
        title = await lookup_title(self.catalog, ref)
        try:
            await self.notifier.notify_friend_activity(
                user_id, ActivityKind.RATED, ActivityMedia(ref=ref, title=title, rating=score),
            )
        except SQLAlchemyError as e:
            logger.error(f"Friend fan-out for {user_id} failed: {e}")
