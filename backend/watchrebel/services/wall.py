"""User walls: posts, edits, deletions and reactions.

``WallGate`` decides whether an actor may post on someone's wall:

    owner == actor          → allowed
    privacy "none"          → WALL_PRIVACY_NONE
    privacy "friends"       → allowed if a friendship edge exists either way,
                              else WALL_PRIVACY_FRIENDS_ONLY
    privacy "all" (default) → allowed
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.clients.base import IMediaCatalog
from watchrebel.domain import (
    ActivityKind, ActivityMedia, MediaRef, PostType, WallPrivacy, parse_media_type, parse_rating,
)
from watchrebel.errors import Forbidden, NotFound, ValidationError
from watchrebel.models.tables import Friendship, Notification, Reaction, User, WallPost, utcnow
from watchrebel.services.catalog import lookup_title
from watchrebel.services.locks import KeyedLocks
from watchrebel.services.notifier import FanoutNotifier

logger = logging.getLogger(__name__)


async def are_connected(db: AsyncSession, a: str, b: str) -> bool:
    """True when a friendship edge exists in either direction."""
    edge = await db.scalar(
        select(Friendship.id).where(or_(
            (Friendship.user_id == a) & (Friendship.friend_id == b),
            (Friendship.user_id == b) & (Friendship.friend_id == a),
        )).limit(1)
    )
    return edge is not None


class WallGate:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check(self, actor_id: str, wall_owner_id: str) -> User:
        """Return the wall owner if ``actor_id`` may post there, else raise."""
        owner = await self.db.get(User, wall_owner_id)
        if owner is None:
            raise NotFound("Пользователь не найден", "USER_NOT_FOUND")
        if owner.id == actor_id:
            return owner

        privacy = owner.wall_privacy or WallPrivacy.ALL.value
        if privacy == WallPrivacy.NONE.value:
            raise Forbidden("Пользователь запретил публикации на своей стене", "WALL_PRIVACY_NONE")
        if privacy == WallPrivacy.FRIENDS.value and not await are_connected(self.db, actor_id, wall_owner_id):
            raise Forbidden(
                "Только друзья могут писать на стене этого пользователя", "WALL_PRIVACY_FRIENDS_ONLY",
            )
        return owner


class WallService:
    def __init__(
        self,
        db: AsyncSession,
        locks: KeyedLocks,
        notifier: Optional[FanoutNotifier] = None,
        catalog: Optional[IMediaCatalog] = None,
        edit_window: timedelta = timedelta(hours=1),
    ):
        self.db = db
        self.locks = locks
        self.gate = WallGate(db)
        self.notifier = notifier
        self.catalog = catalog
        self.edit_window = edit_window

    # ── Reading ──────────────────────────────────────────────────

    async def get_wall(self, wall_owner_id: str) -> list[dict]:
        owner = await self.db.get(User, wall_owner_id)
        if owner is None:
            raise NotFound("Пользователь не найден", "USER_NOT_FOUND")
        rows = await self.db.execute(
            select(WallPost)
            .where(WallPost.wall_owner_id == wall_owner_id)
            .order_by(WallPost.created_at.desc())
        )
        return await self.serialize(list(rows.scalars().all()))

    async def get_post(self, post_id: str) -> WallPost:
        post = await self.db.get(WallPost, post_id)
        if post is None:
            raise NotFound("Пост не найден", "POST_NOT_FOUND")
        return post

    async def serialize(self, posts: list[WallPost]) -> list[dict]:
        """Posts with author, wall owner and reactions attached."""
        if not posts:
            return []
        post_ids = [p.id for p in posts]
        reactions = (await self.db.execute(
            select(Reaction).where(Reaction.post_id.in_(post_ids)).order_by(Reaction.created_at)
        )).scalars().all()

        user_ids = {p.user_id for p in posts} | {p.wall_owner_id for p in posts} | {r.user_id for r in reactions}
        users = {
            u.id: u for u in (await self.db.execute(select(User).where(User.id.in_(user_ids)))).scalars().all()
        }

        by_post: dict[str, list[dict]] = {pid: [] for pid in post_ids}
        for r in reactions:
            by_post[r.post_id].append({
                "id": r.id,
                "postId": r.post_id,
                "userId": r.user_id,
                "emoji": r.emoji,
                "createdAt": r.created_at.isoformat(),
                "user": _user_brief(users.get(r.user_id)),
            })

        return [
            {
                "id": p.id,
                "userId": p.user_id,
                "wallOwnerId": p.wall_owner_id,
                "postType": p.post_type,
                "content": p.content,
                "tmdbId": p.tmdb_id,
                "mediaType": p.media_type,
                "rating": p.rating,
                "createdAt": p.created_at.isoformat(),
                "editedAt": p.edited_at.isoformat() if p.edited_at else None,
                "author": _user_brief(users.get(p.user_id)),
                "wallOwner": _user_brief(users.get(p.wall_owner_id)),
                "reactions": by_post[p.id],
            }
            for p in posts
        ]

    # ── Writing ──────────────────────────────────────────────────

    async def create_post(
        self,
        author: User,
        post_type,
        content: Optional[str] = None,
        tmdb_id=None,
        media_type=None,
        rating=None,
        wall_owner_id: Optional[str] = None,
    ) -> WallPost:
        self._check_post_ban(author)
        owner_id = wall_owner_id or author.id
        await self.gate.check(author.id, owner_id)

        try:
            kind = PostType(post_type)
        except ValueError:
            raise ValidationError(
                "postType должен быть одним из: text, media_added, rating, review, status_update",
                "INVALID_POST_TYPE",
            )

        text = (content or "").strip() or None
        ref: Optional[MediaRef] = None
        if kind in (PostType.TEXT, PostType.STATUS_UPDATE, PostType.REVIEW) and not text:
            raise ValidationError("Содержание поста не может быть пустым", "MISSING_CONTENT")
        if kind in (PostType.MEDIA_ADDED, PostType.RATING, PostType.REVIEW):
            if tmdb_id is None:
                raise ValidationError("tmdbId обязателен для этого типа поста", "MISSING_TMDB_ID")
            ref = MediaRef(tmdb_id, parse_media_type(media_type))
        if kind == PostType.RATING:
            rating = parse_rating(rating)
        else:
            rating = None

        post = WallPost(
            user_id=author.id,
            wall_owner_id=owner_id,
            post_type=kind.value,
            content=text,
            tmdb_id=ref.tmdb_id if ref else None,
            media_type=ref.media_type.value if ref else None,
            rating=rating,
        )
        self.db.add(post)
        await self.db.commit()
        logger.info(f"User {author.id} posted {kind.value} on wall of {owner_id}")

        if self.notifier is not None:
            try:
                if owner_id != author.id:
                    await self.notifier.notify_wall_post(owner_id, author.id, post.id)
                elif kind == PostType.REVIEW and ref is not None:
                    title = await lookup_title(self.catalog, ref)
                    await self.notifier.notify_friend_activity(
                        author.id, ActivityKind.REVIEWED, ActivityMedia(ref=ref, title=title),
                    )
            except SQLAlchemyError as e:
                logger.error(f"Notifications for post {post.id} failed: {e}")
        return post

    async def edit_post(self, author: User, post_id: str, content: Optional[str]) -> WallPost:
        self._check_post_ban(author)
        post = await self.get_post(post_id)
        if post.user_id != author.id:
            raise Forbidden("Нет прав на редактирование этого поста", "FORBIDDEN")
        if utcnow() - post.created_at > self.edit_window:
            raise Forbidden("Время редактирования истекло", "EDIT_TIME_EXPIRED")
        text = (content or "").strip()
        if not text:
            raise ValidationError("Содержание поста не может быть пустым", "EMPTY_CONTENT")
        post.content = text
        post.edited_at = utcnow()
        await self.db.commit()
        return post

    async def delete_post(self, actor_id: str, post_id: str):
        """Author or wall owner may delete; reactions and notifications cascade."""
        post = await self.get_post(post_id)
        if actor_id not in (post.user_id, post.wall_owner_id):
            raise Forbidden("Нет прав на удаление этого поста", "FORBIDDEN")
        await self.db.delete(post)
        await self.db.commit()

    # ── Reactions ────────────────────────────────────────────────

    async def react(self, user_id: str, post_id: str, emoji: Optional[str]) -> tuple[Reaction, bool]:
        """Upsert the caller's reaction. Only a new reaction notifies the author."""
        if not emoji or not emoji.strip():
            raise ValidationError("Эмоджи обязателен", "MISSING_EMOJI")
        post = await self.get_post(post_id)

        async with self.locks.hold(user_id):
            reaction = await self.db.scalar(
                select(Reaction).where(Reaction.post_id == post_id, Reaction.user_id == user_id)
            )
            created = reaction is None
            if created:
                reaction = Reaction(post_id=post_id, user_id=user_id, emoji=emoji)
                self.db.add(reaction)
            else:
                reaction.emoji = emoji
                reaction.created_at = utcnow()
            await self.db.commit()

        if created and self.notifier is not None:
            try:
                await self.notifier.notify_reaction(post.user_id, user_id, emoji, post_id)
            except SQLAlchemyError as e:
                logger.error(f"Reaction notification for post {post_id} failed: {e}")
        return reaction, created

    async def remove_reaction(self, user_id: str, post_id: str, reaction_id: str):
        reaction = await self.db.get(Reaction, reaction_id)
        if reaction is None or reaction.post_id != post_id:
            raise NotFound("Реакция не найдена", "REACTION_NOT_FOUND")
        if reaction.user_id != user_id:
            raise Forbidden("Нет прав на удаление этой реакции", "FORBIDDEN")
        await self.db.delete(reaction)
        await self.db.execute(
            delete(Notification).where(
                Notification.type == "reaction",
                Notification.related_post_id == post_id,
                Notification.related_user_id == user_id,
            )
        )
        await self.db.commit()

    @staticmethod
    def _check_post_ban(user: User):
        if user.post_ban_until is not None and user.post_ban_until > utcnow():
            raise Forbidden(
                f"Вам запрещено создавать посты до {user.post_ban_until.strftime('%d.%m.%Y %H:%M')}",
                "POST_BANNED",
                reason=user.ban_reason,
                postBanUntil=user.post_ban_until.isoformat(),
            )


def _user_brief(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "displayName": user.display_name, "avatarUrl": user.avatar_url}
