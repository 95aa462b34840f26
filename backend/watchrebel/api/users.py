"""User registration, profiles, friends and notification settings."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from watchrebel.api.deps import account_service, get_current_user, social_service
from watchrebel.api.schemas import NotificationSettingsUpdate, ProfileUpdate, UserCreate
from watchrebel.errors import Forbidden
from watchrebel.models.tables import User
from watchrebel.services.accounts import AccountService
from watchrebel.services.social import SocialService

router = APIRouter()


def user_dict(user: User, private: bool = False) -> dict:
    """Public profile fields; ``private`` adds what only the owner and admins see."""
    data = {
        "id": user.id,
        "displayName": user.display_name,
        "avatarUrl": user.avatar_url,
        "userStatus": user.user_status,
        "wallPrivacy": user.wall_privacy,
        "createdAt": user.created_at.isoformat(),
    }
    if private:
        data.update({
            "telegramUsername": user.telegram_username,
            "isAdmin": user.is_admin,
            "isBlocked": user.is_blocked,
            "banReason": user.ban_reason,
            "postBanUntil": user.post_ban_until.isoformat() if user.post_ban_until else None,
        })
    return data


def _settings_dict(prefs: dict) -> dict:
    return {
        "friendAddedToList": prefs["friend_added_to_list"],
        "friendRatedMedia": prefs["friend_rated_media"],
        "friendPostedReview": prefs["friend_posted_review"],
        "friendReactedToPost": prefs["friend_reacted_to_post"],
        "newMessage": prefs["new_message"],
        "newFriendRequest": prefs["new_friend_request"],
        "adminAnnouncement": prefs["admin_announcement"],
    }


# ── Accounts ─────────────────────────────────────────────────────

@router.post("/users")
async def register(
    body: UserCreate,
    response: Response,
    accounts: AccountService = Depends(account_service),
):
    """Create a user, or return the existing one linked to ``telegramChatId``."""
    user, created = await accounts.register(body.display_name, body.telegram_chat_id, body.telegram_username)
    response.status_code = 201 if created else 200
    return {"user": user_dict(user, private=True), "created": created}


@router.get("/users/me")
async def get_me(user: User = Depends(get_current_user)):
    return {"user": user_dict(user, private=True)}


@router.delete("/users/me")
async def delete_me(
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    await accounts.delete_account(user.id)
    return {"message": "Аккаунт удален"}


@router.get("/users/search")
async def search_users(
    q: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    users = await accounts.search(q or "", exclude_id=user.id)
    return {"users": [user_dict(u) for u in users]}


@router.get("/users/{user_id}")
async def get_profile(
    user_id: str,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    target = await accounts.get_user(user_id)
    return {"user": user_dict(target, private=target.id == user.id or user.is_admin)}


@router.put("/users/{user_id}")
async def update_profile(
    user_id: str,
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    updated = await accounts.update_profile(
        user.id, user_id,
        display_name=body.display_name,
        user_status=body.user_status,
        wall_privacy=body.wall_privacy,
    )
    return {"user": user_dict(updated, private=True)}


# ── Friends ──────────────────────────────────────────────────────

@router.get("/users/{user_id}/friends")
async def get_friends(
    user_id: str,
    user: User = Depends(get_current_user),
    social: SocialService = Depends(social_service),
):
    friends = await social.get_friends(user_id)
    return {
        "friends": [
            {**user_dict(friend), "friendshipId": edge.id, "friendsSince": edge.created_at.isoformat()}
            for friend, edge in friends
        ]
    }


@router.post("/friends/{friend_id}", status_code=201)
async def add_friend(
    friend_id: str,
    user: User = Depends(get_current_user),
    social: SocialService = Depends(social_service),
):
    edge = await social.add_friend(user.id, friend_id)
    return {"friendship": {"id": edge.id, "userId": edge.user_id, "friendId": edge.friend_id}}


@router.delete("/friends/{friend_id}")
async def remove_friend(
    friend_id: str,
    user: User = Depends(get_current_user),
    social: SocialService = Depends(social_service),
):
    await social.remove_friend(user.id, friend_id)
    return {"message": "Пользователь удален из друзей"}


# ── Notification settings ────────────────────────────────────────

@router.get("/users/{user_id}/notification-settings")
async def get_notification_settings(
    user_id: str,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    if user_id != user.id:
        raise Forbidden("Нет прав на просмотр этих настроек", "FORBIDDEN")
    return {"settings": _settings_dict(await accounts.get_notification_settings(user.id))}


@router.put("/users/{user_id}/notification-settings")
async def update_notification_settings(
    user_id: str,
    body: NotificationSettingsUpdate,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(account_service),
):
    if user_id != user.id:
        raise Forbidden("Нет прав на изменение этих настроек", "FORBIDDEN")
    prefs = await accounts.update_notification_settings(user.id, body.model_dump(exclude_none=True))
    return {"settings": _settings_dict(prefs)}
