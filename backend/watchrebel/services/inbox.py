"""Recipient-side notification management: list, mark read, delete."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.errors import Forbidden, NotFound
from watchrebel.models.tables import Notification, User


class InboxService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_notifications(self, user_id: str, unread_only: bool = False) -> list[dict]:
        query = (
            select(Notification, User)
            .join(User, Notification.related_user_id == User.id, isouter=True)
            .where(Notification.user_id == user_id)
        )
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        rows = await self.db.execute(query.order_by(Notification.created_at.desc()))
        return [
            {
                "id": n.id,
                "userId": n.user_id,
                "type": n.type,
                "content": n.content,
                "relatedUserId": n.related_user_id,
                "relatedPostId": n.related_post_id,
                "isRead": n.is_read,
                "createdAt": n.created_at.isoformat(),
                "relatedUser": {"displayName": u.display_name, "avatarUrl": u.avatar_url} if u else None,
            }
            for n, u in rows.all()
        ]

    async def _owned(self, user_id: str, notification_id: str) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFound("Уведомление не найдено", "NOTIFICATION_NOT_FOUND")
        if notification.user_id != user_id:
            raise Forbidden("Нет прав на это уведомление", "FORBIDDEN")
        return notification

    async def mark_read(self, user_id: str, notification_id: str) -> Notification:
        notification = await self._owned(user_id, notification_id)
        notification.is_read = True
        await self.db.commit()
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount

    async def delete(self, user_id: str, notification_id: str):
        notification = await self._owned(user_id, notification_id)
        await self.db.delete(notification)
        await self.db.commit()
