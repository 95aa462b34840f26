"""Value types shared across services.

Media items are never stored locally: a ``MediaRef`` is a (catalog id,
kind) pair pointing into TMDB.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from watchrebel.errors import ValidationError


class MediaType(str, Enum):
    MOVIE = "movie"
    TV = "tv"


class WallPrivacy(str, Enum):
    ALL = "all"
    FRIENDS = "friends"
    NONE = "none"


class PostType(str, Enum):
    TEXT = "text"
    MEDIA_ADDED = "media_added"
    RATING = "rating"
    REVIEW = "review"
    STATUS_UPDATE = "status_update"


class ActivityKind(str, Enum):
    ADDED_TO_LIST = "added_to_list"
    RATED = "rated"
    REVIEWED = "reviewed"


# Notification-preference column consulted for each kind of event
PREFERENCE_FOR_ACTIVITY = {
    ActivityKind.ADDED_TO_LIST: "friend_added_to_list",
    ActivityKind.RATED: "friend_rated_media",
    ActivityKind.REVIEWED: "friend_posted_review",
}
PREFERENCE_REACTION = "friend_reacted_to_post"
PREFERENCE_MESSAGE = "new_message"
PREFERENCE_FRIEND_REQUEST = "new_friend_request"
PREFERENCE_ANNOUNCEMENT = "admin_announcement"

NOTIFICATION_PREFERENCES = (
    "friend_added_to_list",
    "friend_rated_media",
    "friend_posted_review",
    "friend_reacted_to_post",
    "new_message",
    "new_friend_request",
    "admin_announcement",
)


def parse_media_type(value) -> MediaType:
    try:
        return MediaType(value)
    except ValueError:
        raise ValidationError('mediaType должен быть "movie" или "tv"', "INVALID_MEDIA_TYPE")


def parse_wall_privacy(value) -> WallPrivacy:
    try:
        return WallPrivacy(value)
    except ValueError:
        raise ValidationError(
            "wallPrivacy должен быть одним из: all, friends, none", "INVALID_WALL_PRIVACY",
        )


def parse_rating(value) -> int:
    """Ratings are integers 1..10; bools are rejected even though they are ints."""
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 10:
        raise ValidationError("Рейтинг должен быть целым числом от 1 до 10", "INVALID_RATING")
    return value


@dataclass(frozen=True)
class MediaRef:
    """Reference to a movie or series in the external catalog."""
    tmdb_id: int
    media_type: MediaType

    def __post_init__(self):
        if isinstance(self.tmdb_id, bool) or not isinstance(self.tmdb_id, int) or self.tmdb_id <= 0:
            raise ValidationError("tmdbId обязателен и должен быть числом", "INVALID_TMDB_ID")
        object.__setattr__(self, "media_type", parse_media_type(self.media_type))

    @property
    def placeholder_title(self) -> str:
        return f"контент #{self.tmdb_id}"


@dataclass
class ActivityMedia:
    """Media payload carried by a friend-activity event."""
    ref: MediaRef
    title: str
    rating: Optional[int] = None
