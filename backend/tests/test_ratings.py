import pytest
from sqlalchemy import func, select

from conftest import follow, make_user
from watchrebel.domain import MediaRef, MediaType
from watchrebel.errors import Forbidden, ValidationError
from watchrebel.models.tables import Notification, Rating, WallPost
from watchrebel.services.ratings import RatingService

FIGHT_CLUB = MediaRef(550, MediaType.MOVIE)


@pytest.fixture
def service(db, locks, notifier, catalog):
    return RatingService(db, locks, notifier, catalog)


async def test_rating_upsert_keeps_one_row(db, service):
    user = await make_user(db, "Аня")

    first, created = await service.rate(user.id, FIGHT_CLUB, 7)
    assert created
    second, created = await service.rate(user.id, FIGHT_CLUB, 9)
    assert not created
    assert second.id == first.id

    rows = (await db.execute(select(Rating))).scalars().all()
    assert len(rows) == 1
    assert rows[0].rating == 9


async def test_first_rating_posts_on_own_wall_once(db, service):
    user = await make_user(db, "Аня")
    await service.rate(user.id, FIGHT_CLUB, 7)
    await service.rate(user.id, FIGHT_CLUB, 8)

    posts = (await db.execute(select(WallPost))).scalars().all()
    assert len(posts) == 1
    assert posts[0].post_type == "rating"
    assert posts[0].wall_owner_id == user.id
    assert posts[0].rating == 7


async def test_every_rate_call_fans_out(db, service):
    actor = await make_user(db, "Аня")
    fan = await make_user(db, "Борис")
    await follow(db, fan.id, actor.id)

    await service.rate(actor.id, FIGHT_CLUB, 7)
    await service.rate(actor.id, FIGHT_CLUB, 10)

    contents = (await db.execute(select(Notification.content).order_by(Notification.created_at))).scalars().all()
    assert contents == [
        'Аня оценил "Бойцовский клуб" на 7/10',
        'Аня оценил "Бойцовский клуб" на 10/10',
    ]


@pytest.mark.parametrize("value", [0, 11, 5.5, "7", True, None])
async def test_invalid_rating(db, service, value):
    user = await make_user(db, "Аня")
    with pytest.raises(ValidationError) as exc:
        await service.rate(user.id, FIGHT_CLUB, value)
    assert exc.value.code == "INVALID_RATING"
    assert await db.scalar(select(func.count(Rating.id))) == 0


async def test_update_only_by_owner(db, service):
    owner = await make_user(db, "Аня")
    other = await make_user(db, "Борис")
    rating, _ = await service.rate(owner.id, FIGHT_CLUB, 5)

    with pytest.raises(Forbidden):
        await service.update(other.id, rating.id, 6)
    updated = await service.update(owner.id, rating.id, 6)
    assert updated.rating == 6


async def test_user_ratings_filter(db, service):
    user = await make_user(db, "Аня")
    await service.rate(user.id, FIGHT_CLUB, 9)
    await service.rate(user.id, MediaRef(1399, MediaType.TV), 8)

    assert len(await service.get_user_ratings(user.id)) == 2
    shows = await service.get_user_ratings(user.id, "tv")
    assert [r.tmdb_id for r in shows] == [1399]
