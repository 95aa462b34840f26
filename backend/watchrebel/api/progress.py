"""Episode progress endpoints."""

from fastapi import APIRouter, Depends, Response

from watchrebel.api.deps import get_current_user, progress_service
from watchrebel.api.schemas import ProgressBody, ProgressUpdate
from watchrebel.models.tables import EpisodeProgress, User
from watchrebel.services.progress import ProgressService

router = APIRouter()


def _progress_dict(progress: EpisodeProgress) -> dict:
    return {
        "id": progress.id,
        "userId": progress.user_id,
        "tmdbId": progress.tmdb_id,
        "seasonNumber": progress.season_number,
        "episodeNumber": progress.episode_number,
        "watchedAt": progress.watched_at.isoformat(),
    }


@router.get("/progress/{series_id}")
async def get_series_progress(
    series_id: str,
    user: User = Depends(get_current_user),
    service: ProgressService = Depends(progress_service),
):
    """Watched episodes of one series, ordered by season then episode."""
    rows = await service.get_series_progress(user.id, series_id)
    return {"progress": [_progress_dict(p) for p in rows]}


@router.post("/progress")
async def mark_watched(
    body: ProgressBody,
    response: Response,
    user: User = Depends(get_current_user),
    service: ProgressService = Depends(progress_service),
):
    """201 when the episode is newly marked, 200 when it already was."""
    progress, created = await service.mark_watched(
        user.id, body.tmdb_id, body.season_number, body.episode_number,
    )
    response.status_code = 201 if created else 200
    return {"progress": _progress_dict(progress), "created": created}


@router.put("/progress/{progress_id}")
async def update_progress(
    progress_id: str,
    body: ProgressUpdate,
    user: User = Depends(get_current_user),
    service: ProgressService = Depends(progress_service),
):
    progress = await service.update(user.id, progress_id, body.season_number, body.episode_number)
    return {"progress": _progress_dict(progress)}
