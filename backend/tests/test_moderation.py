import pytest
from sqlalchemy import select

from conftest import make_user
from watchrebel.errors import Forbidden, NotFound, ValidationError
from watchrebel.models.tables import Notification, utcnow
from watchrebel.services.inbox import InboxService
from watchrebel.services.moderation import ModerationService


@pytest.fixture
def moderation(db, notifier):
    return ModerationService(db, notifier)


@pytest.fixture
async def admin(db):
    return await make_user(db, "Админ", chat_id="1", is_admin=True)


async def test_block_and_unblock(db, moderation, admin, channel):
    user = await make_user(db, "Аня", chat_id="2")

    blocked = await moderation.set_blocked(admin, user.id, True, "Спам")
    assert blocked.is_blocked and blocked.ban_reason == "Спам"
    assert "Ваш аккаунт заблокирован" in channel.sent[-1][1]

    unblocked = await moderation.set_blocked(admin, user.id, False)
    assert not unblocked.is_blocked and unblocked.ban_reason is None
    assert "разблокирован" in channel.sent[-1][1]

    actions = await moderation.get_actions(user.id)
    assert {a.action_type for a in actions} == {"block", "unblock"}
    assert not any(a.is_active for a in actions)


async def test_block_validation(db, moderation, admin):
    with pytest.raises(ValidationError) as exc:
        await moderation.set_blocked(admin, admin.id, True)
    assert exc.value.code == "CANNOT_BLOCK_SELF"
    with pytest.raises(ValidationError) as exc:
        await moderation.set_blocked(admin, admin.id, "yes")
    assert exc.value.code == "INVALID_PARAMETER"
    with pytest.raises(NotFound):
        await moderation.set_blocked(admin, "ghost", True)


async def test_post_ban(db, moderation, admin, channel):
    user = await make_user(db, "Аня", chat_id="2")

    action = await moderation.post_ban(admin, user.id, 30, "Флуд")

    assert action.is_active and action.duration_minutes == 30
    await db.refresh(user)
    assert user.post_ban_until > utcnow()
    assert "<b>Длительность:</b> 30 минут" in channel.sent[-1][1]

    await moderation.lift_post_ban(admin, user.id)
    await db.refresh(user)
    assert user.post_ban_until is None


@pytest.mark.parametrize("duration,reason,code", [
    (0, "Флуд", "INVALID_DURATION"),
    (-5, "Флуд", "INVALID_DURATION"),
    (None, "Флуд", "INVALID_DURATION"),
    (10, "  ", "MISSING_REASON"),
    (10, None, "MISSING_REASON"),
])
async def test_post_ban_validation(db, moderation, admin, duration, reason, code):
    user = await make_user(db, "Аня")
    with pytest.raises(ValidationError) as exc:
        await moderation.post_ban(admin, user.id, duration, reason)
    assert exc.value.code == code


async def test_delete_user(db, moderation, admin):
    user = await make_user(db, "Аня")
    with pytest.raises(ValidationError) as exc:
        await moderation.delete_user(admin, admin.id)
    assert exc.value.code == "CANNOT_DELETE_SELF"

    await moderation.delete_user(admin, user.id)
    assert [u.id for u in await moderation.list_users()] == [admin.id]


async def test_announcement(db, moderation, admin):
    await make_user(db, "Аня")
    with pytest.raises(ValidationError) as exc:
        await moderation.announce(admin, " ")
    assert exc.value.code == "EMPTY_CONTENT"

    result = await moderation.announce(admin, "Обновление вышло")

    assert result.sent == 2
    notes = (await db.execute(select(Notification))).scalars().all()
    assert {n.type for n in notes} == {"announcement"}


# ── Inbox ────────────────────────────────────────────────────────

async def test_inbox_flow(db, moderation, admin):
    user = await make_user(db, "Аня")
    other = await make_user(db, "Борис")
    await moderation.announce(admin, "Первое")
    await moderation.announce(admin, "Второе")
    inbox = InboxService(db)

    notes = await inbox.get_notifications(user.id)
    assert [n["content"] for n in notes] == ["Второе", "Первое"]
    assert notes[0]["relatedUser"]["displayName"] == "Админ"

    with pytest.raises(Forbidden):
        await inbox.mark_read(other.id, notes[0]["id"])
    await inbox.mark_read(user.id, notes[0]["id"])
    assert len(await inbox.get_notifications(user.id, unread_only=True)) == 1

    assert await inbox.mark_all_read(user.id) == 1
    assert await inbox.get_notifications(user.id, unread_only=True) == []

    await inbox.delete(user.id, notes[1]["id"])
    with pytest.raises(NotFound) as exc:
        await inbox.delete(user.id, notes[1]["id"])
    assert exc.value.code == "NOTIFICATION_NOT_FOUND"
