"""Friendship edges and the friends feed."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.domain import PostType
from watchrebel.errors import Conflict, Forbidden, NotFound, ValidationError
from watchrebel.models.tables import Friendship, User, WallPost
from watchrebel.services.notifier import FanoutNotifier
from watchrebel.services.wall import WallService

logger = logging.getLogger(__name__)


class SocialService:
    def __init__(self, db: AsyncSession, notifier: Optional[FanoutNotifier] = None, feed_limit: int = 10):
        self.db = db
        self.notifier = notifier
        self.feed_limit = feed_limit

    async def add_friend(self, user_id: str, friend_id: str) -> Friendship:
        """Create the edge user → friend. The reverse edge is not implied."""
        if user_id == friend_id:
            raise ValidationError("Нельзя добавить самого себя в друзья", "SELF_FRIEND")
        friend = await self.db.get(User, friend_id)
        if friend is None or friend.is_blocked:
            raise NotFound("Пользователь не найден", "USER_NOT_FOUND")

        existing = await self.db.scalar(
            select(Friendship.id).where(Friendship.user_id == user_id, Friendship.friend_id == friend_id)
        )
        if existing is not None:
            raise Conflict("Пользователь уже в друзьях", "ALREADY_FRIENDS")

        edge = Friendship(user_id=user_id, friend_id=friend_id)
        self.db.add(edge)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Пользователь уже в друзьях", "ALREADY_FRIENDS")
        logger.info(f"User {user_id} added {friend_id} as friend")

        if self.notifier is not None:
            try:
                await self.notifier.notify_new_friend(friend_id, user_id)
            except SQLAlchemyError as e:
                logger.error(f"Friend notification for {friend_id} failed: {e}")
        return edge

    async def remove_friend(self, user_id: str, friend_id: str):
        edge = await self.db.scalar(
            select(Friendship).where(Friendship.user_id == user_id, Friendship.friend_id == friend_id)
        )
        if edge is None:
            raise NotFound("Пользователь не в друзьях", "NOT_FRIENDS")
        await self.db.delete(edge)
        await self.db.commit()

    async def get_friends(self, user_id: str) -> list[tuple[User, Friendship]]:
        """Users that ``user_id`` has added, blocked accounts hidden."""
        rows = await self.db.execute(
            select(User, Friendship)
            .join(Friendship, Friendship.friend_id == User.id)
            .where(Friendship.user_id == user_id, User.is_blocked.is_(False))
            .order_by(Friendship.created_at.desc())
        )
        return [(u, f) for u, f in rows.all()]

    async def get_feed(self, viewer_id: str, owner_id: str, wall: WallService) -> list[dict]:
        """Latest text posts by the viewer and everyone the viewer has added."""
        if viewer_id != owner_id:
            raise Forbidden("Нет прав на просмотр этой ленты", "FORBIDDEN")

        rows = await self.db.execute(select(Friendship.friend_id).where(Friendship.user_id == viewer_id))
        authors = [r[0] for r in rows.all()] + [viewer_id]

        posts = await self.db.execute(
            select(WallPost)
            .where(WallPost.user_id.in_(authors), WallPost.post_type == PostType.TEXT.value)
            .order_by(WallPost.created_at.desc())
            .limit(self.feed_limit)
        )
        return await wall.serialize(list(posts.scalars().all()))
