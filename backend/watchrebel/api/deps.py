"""Shared FastAPI dependencies: caller identity and service wiring.

Session transport lives in front of this API; by the time a request gets
here the caller is identified by the ``X-User-Id`` header.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.database import get_db
from watchrebel.errors import Forbidden, Unauthorized
from watchrebel.models.tables import User
from watchrebel.services.accounts import AccountService
from watchrebel.services.browse import CatalogBrowser
from watchrebel.services.inbox import InboxService
from watchrebel.services.membership import MembershipService
from watchrebel.services.messaging import MessagingService
from watchrebel.services.moderation import ModerationService
from watchrebel.services.progress import ProgressService
from watchrebel.services.ratings import RatingService
from watchrebel.services.social import SocialService
from watchrebel.services.wall import WallService


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not x_user_id:
        raise Unauthorized("Требуется аутентификация", "UNAUTHORIZED")
    user = await db.get(User, x_user_id)
    if user is None:
        raise Unauthorized("Пользователь не найден", "UNAUTHORIZED")
    if user.is_blocked:
        raise Forbidden("Ваш аккаунт заблокирован", "USER_BLOCKED", reason=user.ban_reason)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Требуются права администратора", "ADMIN_REQUIRED")
    return user


# ── Service factories ────────────────────────────────────────────

def membership_service(request: Request, db: AsyncSession = Depends(get_db)) -> MembershipService:
    state = request.app.state
    return MembershipService(db, state.locks, state.notifier, state.catalog)


def rating_service(request: Request, db: AsyncSession = Depends(get_db)) -> RatingService:
    state = request.app.state
    return RatingService(db, state.locks, state.notifier, state.catalog)


def wall_service(request: Request, db: AsyncSession = Depends(get_db)) -> WallService:
    state = request.app.state
    return WallService(
        db,
        state.locks,
        state.notifier,
        state.catalog,
        edit_window=timedelta(minutes=state.settings.wall_edit_window_minutes),
    )


def social_service(request: Request, db: AsyncSession = Depends(get_db)) -> SocialService:
    state = request.app.state
    return SocialService(db, state.notifier, feed_limit=state.settings.feed_limit)


def account_service(request: Request, db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(db, admin_chat_id=request.app.state.settings.telegram_admin_id)


def inbox_service(db: AsyncSession = Depends(get_db)) -> InboxService:
    return InboxService(db)


def messaging_service(request: Request, db: AsyncSession = Depends(get_db)) -> MessagingService:
    state = request.app.state
    return MessagingService(db, state.connections, state.notifier)


def moderation_service(request: Request, db: AsyncSession = Depends(get_db)) -> ModerationService:
    return ModerationService(db, request.app.state.notifier)


def progress_service(request: Request, db: AsyncSession = Depends(get_db)) -> ProgressService:
    return ProgressService(db, request.app.state.locks)


def catalog_browser(request: Request) -> CatalogBrowser:
    return CatalogBrowser(request.app.state.catalog)
