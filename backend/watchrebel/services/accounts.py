"""User accounts, profiles and notification settings."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.domain import NOTIFICATION_PREFERENCES, parse_wall_privacy
from watchrebel.errors import Forbidden, NotFound, ValidationError
from watchrebel.models.tables import NotificationSettings, User

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: AsyncSession, admin_chat_id: Optional[str] = None):
        self.db = db
        self.admin_chat_id = admin_chat_id

    async def get_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("Пользователь не найден", "USER_NOT_FOUND")
        return user

    async def register(
        self,
        display_name: Optional[str],
        telegram_chat_id: Optional[str] = None,
        telegram_username: Optional[str] = None,
    ) -> tuple[User, bool]:
        """Create a user, or return the one already linked to the chat id."""
        if telegram_chat_id:
            existing = await self.db.scalar(select(User).where(User.telegram_chat_id == telegram_chat_id))
            if existing is not None:
                return existing, False

        name = (display_name or "").strip()
        if not name:
            raise ValidationError("Имя не может быть пустым", "EMPTY_NAME")

        is_admin = bool(self.admin_chat_id) and telegram_chat_id == self.admin_chat_id
        user = User(
            display_name=name,
            telegram_chat_id=telegram_chat_id,
            telegram_username=telegram_username,
            is_admin=is_admin,
        )
        self.db.add(user)
        await self.db.commit()
        logger.info(f"Registered user {user.id} ({name}){' as admin' if is_admin else ''}")
        return user, True

    async def search(self, query: str, exclude_id: str, limit: int = 20) -> list[User]:
        q = (query or "").strip()
        if len(q) < 2:
            raise ValidationError("Запрос должен содержать минимум 2 символа", "QUERY_TOO_SHORT")
        rows = await self.db.execute(
            select(User)
            .where(
                User.display_name.ilike(f"%{q}%"),
                User.id != exclude_id,
                User.is_blocked.is_(False),
            )
            .order_by(User.display_name)
            .limit(limit)
        )
        return list(rows.scalars().all())

    async def update_profile(
        self,
        actor_id: str,
        user_id: str,
        display_name: Optional[str] = None,
        user_status: Optional[str] = None,
        wall_privacy: Optional[str] = None,
    ) -> User:
        if actor_id != user_id:
            raise Forbidden("Нет прав на редактирование этого профиля", "FORBIDDEN")
        user = await self.get_user(user_id)
        if display_name is None and user_status is None and wall_privacy is None:
            raise ValidationError("Нет данных для обновления", "NO_UPDATE_DATA")

        if display_name is not None:
            name = display_name.strip()
            if not name:
                raise ValidationError("Имя не может быть пустым", "EMPTY_NAME")
            user.display_name = name
        if user_status is not None:
            user.user_status = user_status.strip() or None
        if wall_privacy is not None:
            user.wall_privacy = parse_wall_privacy(wall_privacy).value
        await self.db.commit()
        return user

    async def delete_account(self, user_id: str):
        """Everything the user owns goes with the row (ON DELETE CASCADE)."""
        user = await self.get_user(user_id)
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"User {user_id} deleted their account")

    # ── Notification settings ────────────────────────────────────

    async def get_notification_settings(self, user_id: str) -> dict:
        prefs = await self.db.get(NotificationSettings, user_id)
        if prefs is None:
            return {name: True for name in NOTIFICATION_PREFERENCES}
        return {name: bool(getattr(prefs, name)) for name in NOTIFICATION_PREFERENCES}

    async def update_notification_settings(self, user_id: str, changes: dict) -> dict:
        updates = {k: v for k, v in changes.items() if k in NOTIFICATION_PREFERENCES and v is not None}
        if not updates:
            raise ValidationError("Нет данных для обновления", "NO_UPDATE_DATA")
        for name, value in updates.items():
            if not isinstance(value, bool):
                raise ValidationError(f"Параметр {name} должен быть boolean", "INVALID_PARAMETER")

        prefs = await self.db.get(NotificationSettings, user_id)
        if prefs is None:
            prefs = NotificationSettings(user_id=user_id, **{name: True for name in NOTIFICATION_PREFERENCES})
            self.db.add(prefs)
        for name, value in updates.items():
            setattr(prefs, name, value)
        await self.db.commit()
        return await self.get_notification_settings(user_id)
