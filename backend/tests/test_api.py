"""HTTP surface: routing, identity header, error rendering."""

import httpx
import pytest

from conftest import FakeCatalog, FakeChannel
from watchrebel.config import Settings
from watchrebel.main import configure_state, create_app


@pytest.fixture
async def app(engine):
    settings = Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        tmdb_api_key=None,
        telegram_bot_token=None,
        telegram_admin_id="1000",
    )
    app = create_app(settings)
    configure_state(app, settings, engine, catalog=FakeCatalog(), channel=FakeChannel())
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(client, name, chat_id=None) -> str:
    resp = await client.post("/api/v1/users", json={"displayName": name, "telegramChatId": chat_id})
    assert resp.status_code in (200, 201)
    return resp.json()["user"]["id"]


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["integrations"] == {"tmdb": True, "telegram": False}


async def test_missing_or_unknown_identity(client):
    resp = await client.get("/api/v1/lists")
    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"

    resp = await client.get("/api/v1/lists", headers=as_user("ghost"))
    assert resp.status_code == 401


async def test_register_twice_returns_existing(client):
    resp = await client.post("/api/v1/users", json={"displayName": "Аня", "telegramChatId": "5"})
    assert resp.status_code == 201
    again = await client.post("/api/v1/users", json={"displayName": "Аня", "telegramChatId": "5"})
    assert again.status_code == 200
    assert again.json()["user"]["id"] == resp.json()["user"]["id"]


async def test_list_flow_and_promotion(client):
    me = as_user(await register(client, "Аня"))

    resp = await client.post("/api/v1/lists", json={"name": "Любимое", "mediaType": "movie"}, headers=me)
    assert resp.status_code == 201
    list_id = resp.json()["list"]["id"]

    resp = await client.post("/api/v1/watchlist", json={"tmdbId": 550, "mediaType": "movie"}, headers=me)
    assert resp.status_code == 201

    resp = await client.post(f"/api/v1/lists/{list_id}/items", json={"tmdbId": 550, "mediaType": "movie"}, headers=me)
    assert resp.status_code == 201

    resp = await client.get("/api/v1/watchlist", headers=me)
    assert resp.json()["items"] == []

    resp = await client.get(f"/api/v1/lists/{list_id}/items", headers=me)
    [item] = resp.json()["items"]
    assert (item["tmdbId"], item["title"], item["releaseYear"]) == (550, "Title 550", 1999)

    resp = await client.post(f"/api/v1/lists/{list_id}/items", json={"tmdbId": 550, "mediaType": "movie"}, headers=me)
    assert resp.status_code == 409
    assert resp.json()["code"] == "ALREADY_IN_LIST"
    assert resp.json()["existingListName"] == "Любимое"

    resp = await client.get("/api/v1/lists", params={"mediaType": "movie"}, headers=me)
    assert resp.json()["lists"][0]["itemCount"] == 1


@pytest.mark.parametrize("body,code", [
    ({"tmdbId": 550, "mediaType": "book"}, "INVALID_MEDIA_TYPE"),
    ({"mediaType": "movie"}, "INVALID_TMDB_ID"),
    ({"tmdbId": -3, "mediaType": "movie"}, "INVALID_TMDB_ID"),
    ({"tmdbId": "abc", "mediaType": "movie"}, "VALIDATION_ERROR"),
])
async def test_watchlist_validation_errors(client, body, code):
    me = as_user(await register(client, "Аня"))
    resp = await client.post("/api/v1/watchlist", json=body, headers=me)
    assert resp.status_code == 400
    assert resp.json()["code"] == code


async def test_rating_status_codes(client):
    me = as_user(await register(client, "Аня"))
    body = {"tmdbId": 550, "mediaType": "movie", "rating": 8}

    first = await client.post("/api/v1/ratings", json=body, headers=me)
    second = await client.post("/api/v1/ratings", json={**body, "rating": 9}, headers=me)
    bad = await client.post("/api/v1/ratings", json={**body, "rating": 11}, headers=me)

    assert (first.status_code, second.status_code) == (201, 200)
    assert second.json()["rating"]["rating"] == 9
    assert bad.status_code == 400 and bad.json()["code"] == "INVALID_RATING"


async def test_wall_privacy_over_http(client):
    owner_id = await register(client, "A")
    guest = as_user(await register(client, "B"))
    owner = as_user(owner_id)

    resp = await client.put(f"/api/v1/users/{owner_id}", json={"wallPrivacy": "friends"}, headers=owner)
    assert resp.json()["user"]["wallPrivacy"] == "friends"

    post = {"postType": "text", "content": "Привет", "targetUserId": owner_id}
    resp = await client.post("/api/v1/wall", json=post, headers=guest)
    assert resp.status_code == 403
    assert resp.json()["code"] == "WALL_PRIVACY_FRIENDS_ONLY"

    resp = await client.post(f"/api/v1/friends/{owner_id}", headers=guest)
    assert resp.status_code == 201

    resp = await client.post("/api/v1/wall", json=post, headers=guest)
    assert resp.status_code == 201
    assert resp.json()["post"]["wallOwnerId"] == owner_id

    resp = await client.get("/api/v1/notifications", headers=owner)
    assert resp.json()["unreadCount"] == 1
    assert resp.json()["notifications"][0]["type"] == "wall_post"


async def test_reaction_over_http(client):
    author = as_user(await register(client, "Аня"))
    reader = as_user(await register(client, "Борис"))
    post_id = (await client.post("/api/v1/wall", json={"postType": "text", "content": "Привет"}, headers=author)).json()["post"]["id"]

    first = await client.post(f"/api/v1/wall/{post_id}/reactions", json={"emoji": "👍"}, headers=reader)
    second = await client.post(f"/api/v1/wall/{post_id}/reactions", json={"emoji": "🔥"}, headers=reader)
    assert (first.status_code, second.status_code) == (201, 200)

    resp = await client.get(f"/api/v1/wall/post/{post_id}", headers=author)
    assert [r["emoji"] for r in resp.json()["post"]["reactions"]] == ["🔥"]

    resp = await client.get("/api/v1/notifications", headers=author)
    assert len(resp.json()["notifications"]) == 1


async def test_messages_over_http(client):
    anna_id = await register(client, "Аня")
    boris_id = await register(client, "Борис")

    resp = await client.post("/api/v1/messages", json={"receiverId": boris_id, "content": "Привет"}, headers=as_user(anna_id))
    assert resp.status_code == 201
    conversation_id = resp.json()["message"]["conversationId"]

    resp = await client.get("/api/v1/messages/conversations", headers=as_user(boris_id))
    assert resp.json()["conversations"][0]["unreadCount"] == 1

    resp = await client.get(f"/api/v1/messages/{conversation_id}", headers=as_user(boris_id))
    assert [m["content"] for m in resp.json()["messages"]] == ["Привет"]

    resp = await client.post("/api/v1/messages", json={"receiverId": anna_id, "content": " "}, headers=as_user(anna_id))
    assert resp.json()["code"] == "EMPTY_MESSAGE"


async def test_feed_is_private(client):
    anna_id = await register(client, "Аня")
    boris = as_user(await register(client, "Борис"))
    resp = await client.get(f"/api/v1/feed/{anna_id}", headers=boris)
    assert resp.status_code == 403


async def test_notification_settings_over_http(client):
    me_id = await register(client, "Аня")
    me = as_user(me_id)

    resp = await client.put(f"/api/v1/users/{me_id}/notification-settings", json={}, headers=me)
    assert resp.json()["code"] == "NO_UPDATE_DATA"

    resp = await client.put(f"/api/v1/users/{me_id}/notification-settings", json={"newMessage": False}, headers=me)
    assert resp.json()["settings"]["newMessage"] is False
    assert resp.json()["settings"]["adminAnnouncement"] is True


async def test_admin_routes(client):
    admin = as_user(await register(client, "Админ", chat_id="1000"))
    user_id = await register(client, "Аня")

    resp = await client.get("/api/v1/admin/users", headers=as_user(user_id))
    assert resp.status_code == 403
    assert resp.json()["code"] == "ADMIN_REQUIRED"

    resp = await client.post(
        f"/api/v1/admin/users/{user_id}/post-ban", json={"durationMinutes": 15, "reason": "Флуд"}, headers=admin,
    )
    assert resp.status_code == 201

    resp = await client.post("/api/v1/wall", json={"postType": "text", "content": "Хочу писать"}, headers=as_user(user_id))
    assert resp.status_code == 403
    assert resp.json()["code"] == "POST_BANNED"

    resp = await client.post(f"/api/v1/admin/users/{user_id}/block", json={"blocked": True, "reason": "Спам"}, headers=admin)
    assert resp.json()["user"]["isBlocked"] is True

    resp = await client.get("/api/v1/lists", headers=as_user(user_id))
    assert resp.status_code == 403
    assert resp.json()["code"] == "USER_BLOCKED"

    resp = await client.post("/api/v1/admin/announcements", json={"content": "Привет всем"}, headers=admin)
    assert resp.json()["delivery"]["sent"] == 1


async def test_media_routes_are_public(client):
    resp = await client.get("/api/v1/media/popular", params={"type": "movie", "page": 2})
    assert resp.status_code == 200
    assert resp.json()["page"] == 2
    assert [m["id"] for m in resp.json()["movies"]] == [2]

    resp = await client.get("/api/v1/media/search", params={"query": "Игра"})
    assert resp.json()["query"] == "Игра"
    assert len(resp.json()["tv"]) == 1

    resp = await client.get("/api/v1/media/discover", params={"type": "tv", "minRating": 7.5})
    assert resp.status_code == 200
    assert resp.json()["results"][0]["media_type"] == "tv"

    resp = await client.get("/api/v1/media/genres", params={"type": "tv"})
    assert resp.json()["movieGenres"] == []

    resp = await client.get("/api/v1/media/movie/550")
    assert resp.json()["poster_url"] == "https://image.tmdb.org/t/p/w500/poster550.jpg"

    resp = await client.get("/api/v1/media/tv/1399/images")
    assert resp.json()["posters"][0]["url_original"] == "https://image.tmdb.org/t/p/original/alt.jpg"


@pytest.mark.parametrize("path,params,code", [
    ("/api/v1/media/search", {"query": " "}, "MISSING_QUERY"),
    ("/api/v1/media/discover", {}, "INVALID_TYPE"),
    ("/api/v1/media/book/550", {}, "INVALID_TYPE"),
    ("/api/v1/media/movie/abc", {}, "INVALID_ID"),
])
async def test_media_validation_errors(client, path, params, code):
    resp = await client.get(path, params=params)
    assert resp.status_code == 400
    assert resp.json()["code"] == code


async def test_progress_over_http(client):
    me = as_user(await register(client, "Аня"))
    body = {"tmdbId": 1399, "seasonNumber": 1, "episodeNumber": 1}

    first = await client.post("/api/v1/progress", json=body, headers=me)
    again = await client.post("/api/v1/progress", json=body, headers=me)
    assert (first.status_code, again.status_code) == (201, 200)
    progress_id = first.json()["progress"]["id"]

    resp = await client.post("/api/v1/progress", json={"tmdbId": 1399, "seasonNumber": 1}, headers=me)
    assert resp.status_code == 400 and resp.json()["code"] == "INVALID_EPISODE_NUMBER"

    resp = await client.put(f"/api/v1/progress/{progress_id}", json={"episodeNumber": 2}, headers=me)
    assert resp.json()["progress"]["episodeNumber"] == 2

    resp = await client.get("/api/v1/progress/1399", headers=me)
    assert [(p["seasonNumber"], p["episodeNumber"]) for p in resp.json()["progress"]] == [(1, 2)]

    resp = await client.get("/api/v1/progress/abc", headers=me)
    assert resp.json()["code"] == "INVALID_SERIES_ID"

    resp = await client.get("/api/v1/progress/1399")
    assert resp.status_code == 401
