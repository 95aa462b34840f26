"""Re-export all SQLAlchemy models for import convenience."""

from watchrebel.models.tables import (  # noqa: F401
    User, NotificationSettings,
    Friendship,
    WatchlistEntry, CustomList, ListItem,
    Rating,
    EpisodeProgress,
    WallPost, Reaction,
    Notification,
    Conversation, Message,
    ModerationAction,
)
