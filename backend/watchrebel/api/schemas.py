"""Request bodies. The wire format is camelCase; Python attributes are snake_case.

Fields are deliberately loose (mostly Optional) so the services can answer
with their own error codes (INVALID_TMDB_ID, EMPTY_NAME, ...) instead of a
generic validation failure.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaBody(CamelModel):
    tmdb_id: Optional[int] = None
    media_type: Optional[str] = None


class ListCreate(CamelModel):
    name: Optional[str] = None
    media_type: Optional[str] = None


class ListRename(CamelModel):
    name: Optional[str] = None


class RatingBody(MediaBody):
    rating: Optional[int] = None


class RatingUpdate(CamelModel):
    rating: Optional[int] = None


class ProgressBody(CamelModel):
    tmdb_id: Optional[int] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None


class ProgressUpdate(CamelModel):
    season_number: Optional[int] = None
    episode_number: Optional[int] = None


class PostCreate(CamelModel):
    post_type: Optional[str] = None
    content: Optional[str] = None
    tmdb_id: Optional[int] = None
    media_type: Optional[str] = None
    rating: Optional[int] = None
    target_user_id: Optional[str] = None


class PostEdit(CamelModel):
    content: Optional[str] = None


class ReactionBody(CamelModel):
    emoji: Optional[str] = None


class UserCreate(CamelModel):
    display_name: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_username: Optional[str] = None


class ProfileUpdate(CamelModel):
    display_name: Optional[str] = None
    user_status: Optional[str] = None
    wall_privacy: Optional[str] = None


class NotificationSettingsUpdate(CamelModel):
    friend_added_to_list: Optional[bool] = None
    friend_rated_media: Optional[bool] = None
    friend_posted_review: Optional[bool] = None
    friend_reacted_to_post: Optional[bool] = None
    new_message: Optional[bool] = None
    new_friend_request: Optional[bool] = None
    admin_announcement: Optional[bool] = None


class MessageBody(CamelModel):
    receiver_id: Optional[str] = None
    content: Optional[str] = None


class BlockBody(CamelModel):
    blocked: Optional[bool] = None
    reason: Optional[str] = None


class PostBanBody(CamelModel):
    duration_minutes: Optional[int] = None
    reason: Optional[str] = None


class AnnouncementBody(CamelModel):
    content: Optional[str] = None
