"""Episode progress for series: which episodes a user has watched."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from watchrebel.errors import Conflict, Forbidden, NotFound, ValidationError
from watchrebel.models.tables import EpisodeProgress, utcnow
from watchrebel.services.locks import KeyedLocks

logger = logging.getLogger(__name__)


def _number(value, minimum: int, message: str, code: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(message, code)
    return value


def parse_series_id(value) -> int:
    try:
        series_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError("ID сериала должен быть числом", "INVALID_SERIES_ID")
    if series_id <= 0:
        raise ValidationError("ID сериала должен быть числом", "INVALID_SERIES_ID")
    return series_id


def parse_season(value) -> int:
    # season 0 holds specials
    return _number(value, 0, "seasonNumber обязателен и должен быть числом", "INVALID_SEASON_NUMBER")


def parse_episode(value) -> int:
    return _number(value, 1, "episodeNumber обязателен и должен быть числом", "INVALID_EPISODE_NUMBER")


class ProgressService:
    def __init__(self, db: AsyncSession, locks: KeyedLocks):
        self.db = db
        self.locks = locks

    async def get_series_progress(self, user_id: str, series_id) -> list[EpisodeProgress]:
        tmdb_id = parse_series_id(series_id)
        rows = await self.db.execute(
            select(EpisodeProgress)
            .where(EpisodeProgress.user_id == user_id, EpisodeProgress.tmdb_id == tmdb_id)
            .order_by(EpisodeProgress.season_number, EpisodeProgress.episode_number)
        )
        return list(rows.scalars().all())

    async def mark_watched(
        self, user_id: str, tmdb_id, season_number, episode_number,
    ) -> tuple[EpisodeProgress, bool]:
        """Idempotent: an episode already marked comes back as is. Returns (row, created)."""
        if isinstance(tmdb_id, bool) or not isinstance(tmdb_id, int) or tmdb_id <= 0:
            raise ValidationError("tmdbId обязателен и должен быть числом", "INVALID_TMDB_ID")
        season = parse_season(season_number)
        episode = parse_episode(episode_number)

        async with self.locks.hold(user_id):
            existing = await self._find(user_id, tmdb_id, season, episode)
            if existing is not None:
                return existing, False
            progress = EpisodeProgress(
                user_id=user_id, tmdb_id=tmdb_id, season_number=season, episode_number=episode,
            )
            self.db.add(progress)
            await self.db.commit()

        logger.info(f"User {user_id} watched tv/{tmdb_id} S{season}E{episode}")
        return progress, True

    async def update(
        self,
        user_id: str,
        progress_id: str,
        season_number: Optional[int] = None,
        episode_number: Optional[int] = None,
    ) -> EpisodeProgress:
        progress = await self.db.get(EpisodeProgress, progress_id)
        if progress is None:
            raise NotFound("Запись о прогрессе не найдена", "PROGRESS_NOT_FOUND")
        if progress.user_id != user_id:
            raise Forbidden("Нет прав на изменение этой записи", "FORBIDDEN")
        if season_number is None and episode_number is None:
            return progress

        season = parse_season(season_number) if season_number is not None else progress.season_number
        episode = parse_episode(episode_number) if episode_number is not None else progress.episode_number
        progress.season_number = season
        progress.episode_number = episode
        progress.watched_at = utcnow()
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Эта серия уже отмечена как просмотренная", "ALREADY_WATCHED")
        return progress

    async def _find(self, user_id: str, tmdb_id: int, season: int, episode: int) -> Optional[EpisodeProgress]:
        return await self.db.scalar(
            select(EpisodeProgress).where(
                EpisodeProgress.user_id == user_id,
                EpisodeProgress.tmdb_id == tmdb_id,
                EpisodeProgress.season_number == season,
                EpisodeProgress.episode_number == episode,
            )
        )
