"""Admin endpoints: user management, sanctions, announcements."""

from fastapi import APIRouter, Depends

from watchrebel.api.deps import moderation_service, require_admin
from watchrebel.api.schemas import AnnouncementBody, BlockBody, PostBanBody
from watchrebel.api.users import user_dict
from watchrebel.models.tables import ModerationAction, User
from watchrebel.services.moderation import ModerationService

router = APIRouter()


def _action_dict(action: ModerationAction) -> dict:
    return {
        "id": action.id,
        "userId": action.user_id,
        "adminId": action.admin_id,
        "actionType": action.action_type,
        "reason": action.reason,
        "durationMinutes": action.duration_minutes,
        "isActive": action.is_active,
        "createdAt": action.created_at.isoformat(),
        "expiresAt": action.expires_at.isoformat() if action.expires_at else None,
    }


@router.get("/admin/users")
async def list_users(
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    users = await service.list_users()
    return {"users": [user_dict(u, private=True) for u in users]}


@router.delete("/admin/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    await service.delete_user(admin, user_id)
    return {"message": "Пользователь удален"}


@router.post("/admin/users/{user_id}/block")
async def set_blocked(
    user_id: str,
    body: BlockBody,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    user = await service.set_blocked(admin, user_id, body.blocked, body.reason)
    return {"user": user_dict(user, private=True)}


@router.post("/admin/users/{user_id}/post-ban", status_code=201)
async def post_ban(
    user_id: str,
    body: PostBanBody,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    action = await service.post_ban(admin, user_id, body.duration_minutes, body.reason)
    return {"action": _action_dict(action)}


@router.delete("/admin/users/{user_id}/post-ban")
async def lift_post_ban(
    user_id: str,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    user = await service.lift_post_ban(admin, user_id)
    return {"user": user_dict(user, private=True)}


@router.get("/admin/users/{user_id}/moderation")
async def get_actions(
    user_id: str,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    actions = await service.get_actions(user_id)
    return {"actions": [_action_dict(a) for a in actions]}


@router.post("/admin/announcements")
async def announce(
    body: AnnouncementBody,
    admin: User = Depends(require_admin),
    service: ModerationService = Depends(moderation_service),
):
    result = await service.announce(admin, body.content)
    return {"delivery": result.to_dict()}
