"""Fan-out notifier.

Turns one activity event into notification rows (plus a Telegram push) for
every eligible recipient. Friend activity goes to every user who has the
actor in their friend list (edge ``recipient → actor``); reactions and wall
posts go to a single user.

Each recipient is processed in its own session and committed on its own,
so a failure for one recipient never aborts the rest. The returned
``FanoutResult`` lists what happened to every recipient.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from watchrebel.clients.base import INotificationChannel
from watchrebel.domain import (
    ActivityKind, ActivityMedia, NOTIFICATION_PREFERENCES,
    PREFERENCE_ANNOUNCEMENT, PREFERENCE_FOR_ACTIVITY, PREFERENCE_FRIEND_REQUEST,
    PREFERENCE_MESSAGE, PREFERENCE_REACTION,
)
from watchrebel.models.tables import Friendship, Notification, NotificationSettings, User

logger = logging.getLogger(__name__)


# ── Result types ─────────────────────────────────────────────────

class Outcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"      # disabled by the recipient's preferences
    FAILED = "failed"


@dataclass
class RecipientResult:
    user_id: str
    outcome: Outcome
    notification_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class FanoutResult:
    results: list[RecipientResult] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.results)

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def sent(self) -> int:
        return self._count(Outcome.SENT)

    @property
    def skipped(self) -> int:
        return self._count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(Outcome.FAILED)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [
                {"userId": r.user_id, "outcome": r.outcome.value, "notificationId": r.notification_id, "error": r.error}
                for r in self.results
            ],
        }


# ── Templates ────────────────────────────────────────────────────

def activity_text(kind: ActivityKind, actor_name: str, media: ActivityMedia) -> str:
    if kind == ActivityKind.ADDED_TO_LIST:
        return f'{actor_name} добавил "{media.title}" в свой список'
    if kind == ActivityKind.RATED:
        return f'{actor_name} оценил "{media.title}" на {media.rating}/10'
    return f'{actor_name} написал отзыв на "{media.title}"'


def reaction_text(reactor_name: str, emoji: str, is_self: bool) -> str:
    if is_self:
        return f"Самолайк активирован {emoji}"
    return f"{reactor_name} отреагировал на вашу запись: {emoji}"


# ── Preferences ──────────────────────────────────────────────

async def is_enabled(session: AsyncSession, user_id: str, preference: str) -> bool:
    """Missing settings row or an unknown preference name both mean enabled."""
    if preference not in NOTIFICATION_PREFERENCES:
        logger.warning(f"Unknown notification preference '{preference}', allowing")
        return True
    prefs = await session.get(NotificationSettings, user_id)
    if prefs is None:
        return True
    return bool(getattr(prefs, preference))


class FanoutNotifier:
    """Materializes notifications and pushes them through a delivery channel."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: INotificationChannel,
        app_url: str = "",
    ):
        self.session_factory = session_factory
        self.channel = channel
        self.app_url = app_url.rstrip("/")

    # ── Friend activity ──────────────────────────────────────────

    async def notify_friend_activity(
        self, actor_id: str, kind: ActivityKind, media: ActivityMedia,
    ) -> FanoutResult:
        """One ``friend_activity`` notification per user who follows the actor."""
        async with self.session_factory() as session:
            actor = await session.get(User, actor_id)
            if actor is None:
                logger.warning(f"Fan-out for unknown actor {actor_id}, nothing to do")
                return FanoutResult()
            rows = await session.execute(
                select(Friendship.user_id).where(Friendship.friend_id == actor_id)
            )
            recipients = [r[0] for r in rows.all()]

        content = activity_text(kind, actor.display_name, media)
        result = FanoutResult()
        for recipient_id in recipients:
            result.results.append(await self._deliver_one(
                recipient_id,
                preference=PREFERENCE_FOR_ACTIVITY[kind],
                type="friend_activity",
                content=content,
                push_text=f"🔔 <b>Активность друга!</b>\n\n{content}",
                related_user_id=actor_id,
            ))

        logger.info(
            f"Fan-out {kind.value} by {actor_id}: {result.attempted} recipients, "
            f"{result.sent} sent, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    # ── Single-recipient notifications ───────────────────────────

    async def notify_reaction(
        self, post_author_id: str, reactor_id: str, emoji: str, post_id: str,
    ) -> FanoutResult:
        is_self = post_author_id == reactor_id
        async with self.session_factory() as session:
            reactor = await session.get(User, reactor_id)
        reactor_name = reactor.display_name if reactor else ""

        content = reaction_text(reactor_name, emoji, is_self)
        if is_self:
            push_text = f"😎 <b>Самолайк активирован!</b>\n\n{content}"
        else:
            push_text = f"🔔 <b>Новая реакция!</b>\n\n{content}"

        outcome = await self._deliver_one(
            post_author_id,
            preference=PREFERENCE_REACTION,
            type="reaction",
            content=content,
            push_text=push_text,
            related_user_id=reactor_id,
            related_post_id=post_id,
        )
        return FanoutResult([outcome])

    async def notify_wall_post(self, wall_owner_id: str, author_id: str, post_id: str) -> FanoutResult:
        """Tell a wall owner that someone else posted on their wall."""
        async with self.session_factory() as session:
            author = await session.get(User, author_id)
        content = f"{author.display_name if author else ''} оставил запись на вашей стене"
        outcome = await self._deliver_one(
            wall_owner_id,
            preference=None,
            type="wall_post",
            content=content,
            push_text=f"📝 <b>Новая запись на стене!</b>\n\n{content}",
            related_user_id=author_id,
            related_post_id=post_id,
        )
        return FanoutResult([outcome])

    async def announce(self, admin_id: str, text: str) -> FanoutResult:
        """Broadcast an announcement to every non-blocked user."""
        async with self.session_factory() as session:
            rows = await session.execute(select(User.id).where(User.is_blocked.is_(False)))
            recipients = [r[0] for r in rows.all()]

        result = FanoutResult()
        for recipient_id in recipients:
            result.results.append(await self._deliver_one(
                recipient_id,
                preference=PREFERENCE_ANNOUNCEMENT,
                type="announcement",
                content=text,
                push_text=f"📢 <b>Объявление от администрации</b>\n\n{text}",
                related_user_id=admin_id,
            ))
        logger.info(f"Announcement by {admin_id}: {result.sent} sent, {result.skipped} skipped, {result.failed} failed")
        return result

    # ── Push-only notifications ──────────────────────────────────

    async def notify_new_friend(self, recipient_id: str, actor_id: str) -> bool:
        async with self.session_factory() as session:
            actor = await session.get(User, actor_id)
            recipient = await session.get(User, recipient_id)
            if actor is None or recipient is None:
                return False
            if not await is_enabled(session, recipient_id, PREFERENCE_FRIEND_REQUEST):
                logger.info(f"Friend notification for {recipient_id} disabled in settings")
                return False
        return await self._push(recipient, f"👥 <b>Новый друг!</b>\n\n{actor.display_name} добавил вас в друзья!")

    async def notify_new_message(self, recipient_id: str, sender_id: str, content: str) -> bool:
        async with self.session_factory() as session:
            sender = await session.get(User, sender_id)
            recipient = await session.get(User, recipient_id)
            if sender is None or recipient is None:
                return False
            if not await is_enabled(session, recipient_id, PREFERENCE_MESSAGE):
                return False
        preview = content[:100] + ("..." if len(content) > 100 else "")
        text = (
            f"💬 <b>Новое сообщение от {sender.display_name}</b>\n\n"
            f"{preview}\n\n"
            f'<a href="{self.app_url}/messages">Открыть на сайте</a>'
        )
        return await self._push(recipient, text)

    async def notify_moderation(
        self,
        user_id: str,
        action: str,
        reason: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        """Moderation notices ignore preferences: users always learn about sanctions."""
        if action == "post_ban":
            until = expires_at.strftime("%d.%m.%Y, %H:%M") if expires_at else ""
            text = (
                f"🚫 <b>Ограничение на создание постов</b>\n\n"
                f"<b>Причина:</b> {reason}\n"
                f"<b>Длительность:</b> {duration_minutes} минут\n"
                f"<b>До:</b> {until}\n\n"
                f"Вы не сможете создавать посты до указанного времени."
            )
        elif action == "permanent_ban":
            text = (
                f"⛔ <b>Ваш аккаунт заблокирован</b>\n\n"
                f"<b>Причина:</b> {reason}\n\n"
                f"Блокировка постоянная. Если вы считаете, что это ошибка, обратитесь к администратору."
            )
        elif action == "unban":
            text = "✅ <b>Ваш аккаунт разблокирован</b>\n\nВсе ограничения сняты. Добро пожаловать обратно!"
        else:
            text = "⚠️ <b>Действие модерации</b>\n\nВаш аккаунт был изменен администратором."

        async with self.session_factory() as session:
            user = await session.get(User, user_id)
        if user is None:
            return False
        return await self._push(user, text)

    # ── Internals ────────────────────────────────────────────────

    async def _deliver_one(
        self,
        recipient_id: str,
        preference: Optional[str],
        type: str,
        content: str,
        push_text: str,
        related_user_id: Optional[str] = None,
        related_post_id: Optional[str] = None,
    ) -> RecipientResult:
        try:
            async with self.session_factory() as session:
                if preference and not await is_enabled(session, recipient_id, preference):
                    logger.info(f"Notification '{preference}' disabled for {recipient_id}, skipping")
                    return RecipientResult(recipient_id, Outcome.SKIPPED)
                notification = await self._create_notification(
                    session, recipient_id, type, content, related_user_id, related_post_id,
                )
                await session.commit()
                recipient = await session.get(User, recipient_id)
        except Exception as e:
            logger.error(f"Notification for {recipient_id} failed: {e}")
            return RecipientResult(recipient_id, Outcome.FAILED, error=str(e))

        if recipient is not None:
            await self._push(recipient, push_text)
        return RecipientResult(recipient_id, Outcome.SENT, notification_id=notification.id)

    async def _create_notification(
        self,
        session: AsyncSession,
        recipient_id: str,
        type: str,
        content: str,
        related_user_id: Optional[str],
        related_post_id: Optional[str],
    ) -> Notification:
        notification = Notification(
            user_id=recipient_id,
            type=type,
            content=content,
            related_user_id=related_user_id,
            related_post_id=related_post_id,
        )
        session.add(notification)
        await session.flush()
        return notification

    async def _push(self, user: User, text: str) -> bool:
        """Push delivery is best-effort: failures are logged, never raised."""
        if not user.telegram_chat_id:
            return False
        try:
            result = await self.channel.send(user.telegram_chat_id, text)
        except Exception as e:
            logger.error(f"Push delivery to {user.id} raised: {e}")
            return False
        if not result.success:
            logger.error(f"Push delivery to {user.id} failed: {result.error}")
        return result.success
