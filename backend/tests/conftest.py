"""Shared fixtures: a fresh SQLite file per test plus in-memory fakes for the
catalog and the push channel."""

from typing import Optional

import pytest

from watchrebel.clients.base import DeliveryResult, IMediaCatalog, INotificationChannel, MediaDetails
from watchrebel.database import create_engine, create_session_factory, init_db
from watchrebel.models.tables import Friendship, NotificationSettings, User
from watchrebel.services.locks import KeyedLocks
from watchrebel.services.notifier import FanoutNotifier


class FakeCatalog(IMediaCatalog):
    def __init__(self, titles: Optional[dict] = None, fail: bool = False, fail_kinds: tuple = ()):
        self.titles = titles or {}
        self.fail = fail
        self.fail_kinds = fail_kinds
        self.calls: list[tuple[str, int]] = []
        self.discovered: list[tuple[str, dict]] = []

    def _check(self, media_type: str):
        if self.fail or media_type in self.fail_kinds:
            raise RuntimeError("catalog down")

    def _title(self, media_type: str, tmdb_id: int) -> str:
        return self.titles.get((media_type, tmdb_id), f"Title {tmdb_id}")

    @staticmethod
    def _page(results: list, page: int) -> dict:
        return {"page": page, "results": results, "total_pages": 3, "total_results": 60}

    async def get_details(self, media_type: str, tmdb_id: int) -> MediaDetails:
        self.calls.append((media_type, tmdb_id))
        self._check(media_type)
        return MediaDetails(
            tmdb_id=tmdb_id,
            media_type=media_type,
            title=self._title(media_type, tmdb_id),
            release_year=1999,
            poster_path=f"/poster{tmdb_id}.jpg",
            vote_average=8.4,
        )

    async def get_full_details(self, media_type: str, tmdb_id: int) -> dict:
        self._check(media_type)
        return {
            "id": tmdb_id,
            "title" if media_type == "movie" else "name": self._title(media_type, tmdb_id),
            "poster_path": f"/poster{tmdb_id}.jpg",
            "backdrop_path": None,
            "images": {"posters": [{"file_path": "/alt.jpg"}], "backdrops": []},
        }

    async def search(self, media_type: str, query: str, page: int = 1) -> dict:
        self._check(media_type)
        return self._page([{"id": 1, "media_type": media_type, "query": query}], page)

    async def get_popular(self, media_type: str, page: int = 1) -> dict:
        self._check(media_type)
        return self._page([{"id": 2, "media_type": media_type}], page)

    async def discover(self, media_type: str, **filters) -> dict:
        self._check(media_type)
        self.discovered.append((media_type, filters))
        return self._page([{"id": 3, "media_type": media_type}], filters.get("page", 1))

    async def get_genres(self, media_type: str) -> list[dict]:
        self._check(media_type)
        return [{"id": 18, "name": f"драма ({media_type})"}]


class FakeChannel(INotificationChannel):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send(self, chat_id: str, text: str) -> DeliveryResult:
        if self.fail:
            return DeliveryResult(success=False, error="boom")
        self.sent.append((chat_id, text))
        return DeliveryResult(success=True, delivery_id=str(len(self.sent)))


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return KeyedLocks()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def catalog():
    return FakeCatalog({("movie", 550): "Бойцовский клуб", ("tv", 1399): "Игра престолов"})


@pytest.fixture
def notifier(session_factory, channel):
    return FanoutNotifier(session_factory, channel, app_url="http://rebel.test")


# ── Helpers ──────────────────────────────────────────────────────

async def make_user(db, name: str, chat_id: Optional[str] = None, **fields) -> User:
    user = User(display_name=name, telegram_chat_id=chat_id, **fields)
    db.add(user)
    await db.commit()
    return user


async def follow(db, user_id: str, friend_id: str) -> Friendship:
    """Edge ``user → friend``: ``user`` has ``friend`` in their friend list."""
    edge = Friendship(user_id=user_id, friend_id=friend_id)
    db.add(edge)
    await db.commit()
    return edge


async def disable(db, user_id: str, **switches):
    prefs = NotificationSettings(user_id=user_id, **switches)
    db.add(prefs)
    await db.commit()
    return prefs
