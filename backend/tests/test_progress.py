import asyncio

import pytest
from sqlalchemy import func, select

from conftest import make_user
from watchrebel.errors import Conflict, Forbidden, NotFound, ValidationError
from watchrebel.models.tables import EpisodeProgress
from watchrebel.services.progress import ProgressService

GOT = 1399


@pytest.fixture
def service(db, locks):
    return ProgressService(db, locks)


async def test_mark_watched_is_idempotent(db, service):
    user = await make_user(db, "Аня")

    first, created = await service.mark_watched(user.id, GOT, 1, 1)
    assert created
    again, created = await service.mark_watched(user.id, GOT, 1, 1)
    assert not created
    assert again.id == first.id


async def test_progress_is_ordered_and_per_user(db, service):
    anna = await make_user(db, "Аня")
    boris = await make_user(db, "Борис")
    for season, episode in [(2, 1), (1, 3), (1, 1), (0, 1)]:
        await service.mark_watched(anna.id, GOT, season, episode)
    await service.mark_watched(boris.id, GOT, 1, 2)
    await service.mark_watched(anna.id, 1396, 1, 1)

    rows = await service.get_series_progress(anna.id, str(GOT))

    assert [(p.season_number, p.episode_number) for p in rows] == [(0, 1), (1, 1), (1, 3), (2, 1)]


@pytest.mark.parametrize("tmdb_id,season,episode,code", [
    (None, 1, 1, "INVALID_TMDB_ID"),
    (0, 1, 1, "INVALID_TMDB_ID"),
    (GOT, None, 1, "INVALID_SEASON_NUMBER"),
    (GOT, -1, 1, "INVALID_SEASON_NUMBER"),
    (GOT, 1, None, "INVALID_EPISODE_NUMBER"),
    (GOT, 1, 0, "INVALID_EPISODE_NUMBER"),
    (GOT, True, 1, "INVALID_SEASON_NUMBER"),
])
async def test_mark_watched_validation(db, service, tmdb_id, season, episode, code):
    user = await make_user(db, "Аня")
    with pytest.raises(ValidationError) as exc:
        await service.mark_watched(user.id, tmdb_id, season, episode)
    assert exc.value.code == code


@pytest.mark.parametrize("series_id", ["abc", "0", None])
async def test_invalid_series_id(db, service, series_id):
    with pytest.raises(ValidationError) as exc:
        await service.get_series_progress("anyone", series_id)
    assert exc.value.code == "INVALID_SERIES_ID"


async def test_marking_a_whole_season_at_once(db, session_factory, locks):
    user = await make_user(db, "Аня")

    async def mark(episode):
        async with session_factory() as session:
            return await ProgressService(session, locks).mark_watched(user.id, GOT, 1, episode)

    # episodes 1-5 with episode 3 sent twice
    results = await asyncio.gather(*(mark(e) for e in [1, 2, 3, 3, 4, 5]))

    assert sum(created for _, created in results) == 5
    count = await db.scalar(select(func.count(EpisodeProgress.id)))
    assert count == 5
    assert len(locks) == 0


async def test_update(db, service):
    user = await make_user(db, "Аня")
    other = await make_user(db, "Борис")
    progress, _ = await service.mark_watched(user.id, GOT, 1, 1)
    await service.mark_watched(user.id, GOT, 1, 2)

    unchanged = await service.update(user.id, progress.id)
    assert (unchanged.season_number, unchanged.episode_number) == (1, 1)

    moved = await service.update(user.id, progress.id, episode_number=5)
    assert (moved.season_number, moved.episode_number) == (1, 5)

    with pytest.raises(Conflict) as exc:
        await service.update(user.id, progress.id, episode_number=2)
    assert exc.value.code == "ALREADY_WATCHED"

    with pytest.raises(Forbidden):
        await service.update(other.id, progress.id, episode_number=7)
    with pytest.raises(NotFound) as exc:
        await service.update(user.id, "missing", episode_number=7)
    assert exc.value.code == "PROGRESS_NOT_FOUND"


async def test_update_validation_leaves_row_untouched(db, service):
    user = await make_user(db, "Аня")
    progress, _ = await service.mark_watched(user.id, GOT, 1, 1)

    with pytest.raises(ValidationError) as exc:
        await service.update(user.id, progress.id, season_number=2, episode_number=0)
    assert exc.value.code == "INVALID_EPISODE_NUMBER"
    await db.refresh(progress)
    assert (progress.season_number, progress.episode_number) == (1, 1)
