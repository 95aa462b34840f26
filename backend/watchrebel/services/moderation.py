"""Admin actions: user removal, blocking, timed post bans, announcements.

Every sanction is recorded in ``moderation_actions`` and announced to the
affected user over the push channel.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.errors import NotFound, ValidationError
from watchrebel.models.tables import ModerationAction, User, utcnow
from watchrebel.services.notifier import FanoutNotifier, FanoutResult

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(self, db: AsyncSession, notifier: Optional[FanoutNotifier] = None):
        self.db = db
        self.notifier = notifier

    async def _target(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("Пользователь не найден", "USER_NOT_FOUND")
        return user

    async def list_users(self) -> list[User]:
        rows = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(rows.scalars().all())

    async def delete_user(self, admin: User, user_id: str):
        if admin.id == user_id:
            raise ValidationError("Нельзя удалить самого себя", "CANNOT_DELETE_SELF")
        user = await self._target(user_id)
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"Admin {admin.id} deleted user {user_id}")

    async def set_blocked(self, admin: User, user_id: str, blocked, reason: Optional[str] = None) -> User:
        if not isinstance(blocked, bool):
            raise ValidationError("Параметр blocked должен быть boolean", "INVALID_PARAMETER")
        if admin.id == user_id and blocked:
            raise ValidationError("Нельзя заблокировать самого себя", "CANNOT_BLOCK_SELF")
        user = await self._target(user_id)

        user.is_blocked = blocked
        user.ban_reason = reason if blocked else None
        if blocked:
            self.db.add(ModerationAction(user_id=user_id, admin_id=admin.id, action_type="block", reason=reason))
        else:
            await self._deactivate(user_id, "block")
            self.db.add(ModerationAction(user_id=user_id, admin_id=admin.id, action_type="unblock", is_active=False))
        await self.db.commit()
        logger.info(f"Admin {admin.id} {'blocked' if blocked else 'unblocked'} user {user_id}")

        await self._notify(user_id, "permanent_ban" if blocked else "unban", reason=reason)
        return user

    async def post_ban(self, admin: User, user_id: str, duration_minutes, reason: Optional[str]) -> ModerationAction:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValidationError("Длительность должна быть положительным числом минут", "INVALID_DURATION")
        if not reason or not reason.strip():
            raise ValidationError("Причина обязательна", "MISSING_REASON")
        user = await self._target(user_id)

        expires_at = utcnow() + timedelta(minutes=duration_minutes)
        await self._deactivate(user_id, "post_ban")
        action = ModerationAction(
            user_id=user_id,
            admin_id=admin.id,
            action_type="post_ban",
            reason=reason.strip(),
            duration_minutes=duration_minutes,
            expires_at=expires_at,
        )
        self.db.add(action)
        user.post_ban_until = expires_at
        user.ban_reason = reason.strip()
        await self.db.commit()
        logger.info(f"Admin {admin.id} banned {user_id} from posting for {duration_minutes} min")

        await self._notify(
            user_id, "post_ban", reason=action.reason, duration_minutes=duration_minutes, expires_at=expires_at,
        )
        return action

    async def lift_post_ban(self, admin: User, user_id: str) -> User:
        user = await self._target(user_id)
        user.post_ban_until = None
        user.ban_reason = None
        await self._deactivate(user_id, "post_ban")
        self.db.add(ModerationAction(user_id=user_id, admin_id=admin.id, action_type="unban", is_active=False))
        await self.db.commit()
        await self._notify(user_id, "unban")
        return user

    async def get_actions(self, user_id: str) -> list[ModerationAction]:
        await self._target(user_id)
        rows = await self.db.execute(
            select(ModerationAction)
            .where(ModerationAction.user_id == user_id)
            .order_by(ModerationAction.created_at.desc())
        )
        return list(rows.scalars().all())

    async def announce(self, admin: User, content: Optional[str]) -> FanoutResult:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Содержание объявления не может быть пустым", "EMPTY_CONTENT")
        if self.notifier is None:
            return FanoutResult()
        return await self.notifier.announce(admin.id, text)

    async def _deactivate(self, user_id: str, action_type: str):
        await self.db.execute(
            update(ModerationAction)
            .where(
                ModerationAction.user_id == user_id,
                ModerationAction.action_type == action_type,
                ModerationAction.is_active.is_(True),
            )
            .values(is_active=False)
        )

    async def _notify(self, user_id: str, action: str, **data):
        if self.notifier is None:
            return
        try:
            await self.notifier.notify_moderation(user_id, action, **data)
        except SQLAlchemyError as e:
            logger.error(f"Moderation notice for {user_id} failed: {e}")
