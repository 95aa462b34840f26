"""Abstract interfaces for the external catalog and push delivery.

Services depend on these contracts only; TMDB and Telegram are the
production implementations, tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


# ── Data Transfer Objects ────────────────────────────────────────

@dataclass
class MediaDetails:
    """The slice of catalog metadata the backend relies on."""
    tmdb_id: int
    media_type: str        # "movie" | "tv"
    title: str
    release_year: Optional[int] = None
    poster_path: Optional[str] = None
    vote_average: Optional[float] = None
    overview: str = ""


@dataclass
class DeliveryResult:
    """Outcome of one outbound push."""
    success: bool
    delivery_id: Optional[str] = None
    error: Optional[str] = None


# ── Abstract Interfaces ──────────────────────────────────────────

class IMediaCatalog(ABC):
    """Interface for read-only media metadata sources."""

    @abstractmethod
    async def get_details(self, media_type: str, tmdb_id: int) -> MediaDetails:
        """Fetch title/year/poster for one movie or series. Raises on failure."""
        ...

    # Browsing returns upstream payloads as-is: result pages carry
    # ``results``, ``page``, ``total_pages`` and ``total_results``.

    @abstractmethod
    async def get_full_details(self, media_type: str, tmdb_id: int) -> dict:
        """Details with credits, videos and images appended."""
        ...

    @abstractmethod
    async def search(self, media_type: str, query: str, page: int = 1) -> dict:
        ...

    @abstractmethod
    async def get_popular(self, media_type: str, page: int = 1) -> dict:
        ...

    @abstractmethod
    async def discover(self, media_type: str, **filters) -> dict:
        ...

    @abstractmethod
    async def get_genres(self, media_type: str) -> list[dict]:
        """[{"id": 28, "name": "боевик"}, ...]"""
        ...


class INotificationChannel(ABC):
    """Interface for push delivery (Telegram or equivalent)."""

    @abstractmethod
    async def send(self, chat_id: str, text: str) -> DeliveryResult:
        """Deliver a message. Never raises for delivery failures."""
        ...
