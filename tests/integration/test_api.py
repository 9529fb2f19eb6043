"""Integration tests for the journal HTTP API over in-memory adapters."""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from silverquill.application.api import create_app
from silverquill.application.controller import JournalController
from silverquill.domain.entities import Identity
from silverquill.domain.interfaces.remote_store import Tables
from silverquill.domain.services.caching_proxy import CachingProxy
from silverquill.domain.services.theme_preference import ThemePreference
from silverquill.infrastructure.local_asset_cache import LocalAssetCache
from silverquill.infrastructure.local_cover_storage import LocalCoverStorage
from silverquill.infrastructure.local_preference_store import LocalPreferenceStore
from silverquill.infrastructure.local_remote_store import LocalRemoteStore
from silverquill.infrastructure.static_identity_provider import StaticIdentityProvider
from silverquill.infrastructure.supabase_identity_provider import SupabaseIdentityProvider

APP_ORIGIN = "https://journal.example.com"
USER = Identity(user_id="user-1", access_token="token-1")


class AssetServer:
    """Stands in for the static asset host."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        if request.url.path == "/app.js":
            return httpx.Response(200, content=b"console.log('journal')", headers={"content-type": "text/javascript"})
        return httpx.Response(404, content=b"missing")


@pytest.fixture
def store():
    return LocalRemoteStore()


@pytest.fixture
def identity_provider():
    return StaticIdentityProvider(USER)


@pytest.fixture
def asset_server():
    return AssetServer()


@pytest.fixture
def controller(store, identity_provider, asset_server):
    proxy = CachingProxy(LocalAssetCache("v1"), httpx.MockTransport(asset_server), APP_ORIGIN, "v1")
    return JournalController(
        remote_store=store,
        identity_provider=identity_provider,
        theme=ThemePreference(LocalPreferenceStore()),
        cover_storage=LocalCoverStorage(),
        proxy=proxy,
    )


@pytest.fixture
def client(controller):
    with TestClient(create_app(controller)) as client:
        yield client


def create_book(client, **fields):
    body = {"title": "Dune", "author": "Frank Herbert", "total_pages": 300}
    body.update(fields)
    response = client.post("/books", json=body)
    assert response.status_code == 201
    return response.json()


def test_health(client):
    data = client.get("/health").json()

    assert data["status"] == "healthy"
    assert data["providers"]["remote_store"] == "LocalRemoteStore"
    assert data["proxy"] == "active"


def test_create_book_with_relations(client):
    tag = client.post("/tags", json={"name": "sci-fi"}).json()

    data = create_book(client, quotes=["Fear is the mind-killer."], tag_ids=[tag["id"]])

    assert data["complete"] is True
    assert data["book"]["current_page"] == 0
    assert [t["name"] for t in data["book"]["tags"]] == ["sci-fi"]
    assert [q["text"] for q in data["book"]["quotes"]] == ["Fear is the mind-killer."]


def test_partial_create_reports_failed_step(client, store):
    store.fail_next(Tables.QUOTES, "insert")

    data = create_book(client, quotes=["lost"])

    assert data["complete"] is False
    assert [s["step"] for s in data["steps"] if not s["ok"]] == ["insert_quotes"]
    assert len(store.rows(Tables.BOOKS)) == 1


def test_list_and_search_books(client):
    create_book(client)
    create_book(client, title="Emma", author="Jane Austen", status="Read")

    assert [b["title"] for b in client.get("/books").json()["books"]] == ["Emma", "Dune"]
    assert [b["title"] for b in client.get("/books", params={"search": "austen"}).json()["books"]] == ["Emma"]
    assert [b["title"] for b in client.get("/books", params={"filter": "Read"}).json()["books"]] == ["Emma"]


def test_update_book(client):
    tag = client.post("/tags", json={"name": "classic"}).json()
    book = create_book(client, quotes=["old"])["book"]

    response = client.put(f"/books/{book['id']}", json={"status": "DNF", "quotes": ["new"], "tag_ids": [tag["id"]]})

    assert response.status_code == 200
    data = response.json()["book"]
    assert data["status"] == "DNF"
    assert [q["text"] for q in data["quotes"]] == ["new"]
    assert [t["id"] for t in data["tags"]] == [tag["id"]]


def test_upload_cover(client):
    book = create_book(client)["book"]

    response = client.post(
        f"/books/{book['id']}/cover", files={"file": ("dune.png", b"\x89PNG", "image/png")}
    )

    assert response.status_code == 200
    assert response.json()["book"]["cover_url"].startswith("memory://covers/user-1/")


def test_log_sessions_clamps_progress(client):
    book = create_book(client)["book"]

    for pages in (120, 100):
        response = client.post(f"/books/{book['id']}/sessions", json={"pages_read": pages, "minutes_read": 30})
        assert response.status_code == 201
    assert response.json()["book"]["current_page"] == 220

    response = client.post(f"/books/{book['id']}/sessions", json={"pages_read": 200, "minutes_read": 30})
    assert response.json()["book"]["current_page"] == 300
    assert response.json()["book"]["progress"] == 100.0


def test_invalid_session_rejected(client):
    book = create_book(client)["book"]

    response = client.post(f"/books/{book['id']}/sessions", json={"pages_read": 0, "minutes_read": 30})

    assert response.status_code == 422


def test_toggle_and_saved_views(client):
    book = create_book(client)["book"]

    assert client.post(f"/books/{book['id']}/favorite").json()["is_favorite"] is True
    assert client.post(f"/books/{book['id']}/bookmark", json={"value": True}).json()["is_bookmarked"] is True
    assert client.post(f"/books/{book['id']}/bookmark", json={"value": True}).json()["is_bookmarked"] is True

    favorites = client.get("/saved", params={"tab": "favorites"}).json()
    assert [b["id"] for b in favorites["books"]] == [book["id"]]


def test_quote_feed(client):
    book = create_book(client)["book"]
    client.post(f"/books/{book['id']}/quotes", json={"text": "The spice must flow."})

    quotes = client.get("/quotes").json()["quotes"]

    assert quotes[0]["text"] == "The spice must flow."
    assert quotes[0]["book_title"] == "Dune"


def test_wishlist_promotion(client, store):
    item = client.post("/wishlist", json={"title": "Emma", "author": "Jane Austen", "notes": "From Sam"}).json()

    response = client.post(f"/wishlist/{item['id']}/promote")

    assert response.status_code == 201
    assert response.json()["status"] == "Want to Read"
    assert response.json()["review"] == "From Sam"
    assert client.get("/wishlist").json()["wishlist"] == []


def test_failed_promotion_keeps_item(client, store):
    item = client.post("/wishlist", json={"title": "Emma"}).json()
    store.fail_next(Tables.BOOKS, "insert")

    response = client.post(f"/wishlist/{item['id']}/promote")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "STORE_001"
    assert [w["id"] for w in client.get("/wishlist").json()["wishlist"]] == [item["id"]]
    assert client.get("/books").json()["books"] == []


def test_delete_book_and_tag(client, store):
    tag = client.post("/tags", json={"name": "a"}).json()
    book = create_book(client, tag_ids=[tag["id"]])["book"]

    assert client.delete(f"/tags/{tag['id']}").json() == {"deleted": tag["id"]}
    assert client.delete(f"/books/{book['id']}").json() == {"deleted": book["id"]}
    assert store.rows(Tables.BOOKS) == []
    assert store.rows(Tables.BOOK_TAGS) == []


def test_unknown_book_is_404(client):
    response = client.post("/books/nope/favorite")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "GRAPH_001"


def test_signed_out_is_401(client, identity_provider, store):
    identity_provider.sign_out()

    response = client.post("/tags", json={"name": "a"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_001"
    assert store.calls == []


def test_theme_preference(client):
    assert client.get("/preferences/theme").json() == {"theme": "silverMist"}

    assert client.put("/preferences/theme", json={"theme": "midnightInk"}).json()["theme"] == "midnightInk"
    assert client.put("/preferences/theme", json={"theme": "neon"}).status_code == 400
    assert client.get("/preferences/theme").json() == {"theme": "midnightInk"}


def test_assets_served_cache_first(client, controller, asset_server):
    first = client.get("/assets/app.js")
    client.portal.call(controller.proxy.wait_for_pending)
    second = client.get("/assets/app.js")

    assert first.status_code == second.status_code == 200
    assert second.content == b"console.log('journal')"
    assert second.headers["content-type"] == "text/javascript"
    assert asset_server.requests == ["/app.js"]


def test_missing_asset_not_cached(client, controller, asset_server):
    assert client.get("/assets/nope.js").status_code == 404
    client.portal.call(controller.proxy.wait_for_pending)
    assert client.get("/assets/nope.js").status_code == 404

    assert asset_server.requests == ["/nope.js", "/nope.js"]


def test_bearer_token_selects_identity():
    """Test that the Authorization header drives a token-based identity provider."""
    def auth(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") == "Bearer good":
            return httpx.Response(200, json={"id": "user-9"})
        return httpx.Response(401, json={"msg": "invalid"})

    identity_provider = SupabaseIdentityProvider(
        "https://abcd.supabase.co", "anon", transport=httpx.MockTransport(auth)
    )
    controller = JournalController(
        remote_store=LocalRemoteStore(valid_tokens=["good"]),
        identity_provider=identity_provider,
        theme=ThemePreference(LocalPreferenceStore()),
    )

    with TestClient(create_app(controller)) as client:
        assert client.get("/books").status_code == 401
        assert client.get("/books", headers={"Authorization": "Bearer bad"}).status_code == 401

        response = client.post("/tags", json={"name": "mine"}, headers={"Authorization": "Bearer good"})
        assert response.status_code == 201
        assert response.json()["owner_id"] == "user-9"


def test_read_during_outage_serves_loaded_books(client, store):
    """Test that reads fall back to the loaded books when the store is down."""
    create_book(client)
    assert len(client.get("/books").json()["books"]) == 1
    store.fail_next(Tables.BOOKS, "select")

    response = client.get("/books")

    assert response.status_code == 200
    assert [b["title"] for b in response.json()["books"]] == ["Dune"]


def test_first_read_during_outage_is_502(client, store):
    store.fail_next(Tables.BOOKS, "select")

    response = client.get("/books")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "STORE_001"


@pytest.mark.asyncio
async def test_concurrent_requests_keep_their_own_identity():
    """Test that overlapping requests with different tokens write as their own user."""
    arrived = []
    both_arrived = asyncio.Event()

    async def auth(request: httpx.Request) -> httpx.Response:
        token = request.headers["authorization"].removeprefix("Bearer ")
        arrived.append(token)
        if len(arrived) == 2:
            both_arrived.set()
        await both_arrived.wait()
        return httpx.Response(200, json={"id": f"user-{token}"})

    store = LocalRemoteStore(valid_tokens=["A", "B"])
    controller = JournalController(
        remote_store=store,
        identity_provider=SupabaseIdentityProvider(
            "https://abcd.supabase.co", "anon", transport=httpx.MockTransport(auth)
        ),
        theme=ThemePreference(LocalPreferenceStore()),
    )
    transport = httpx.ASGITransport(app=create_app(controller))

    async with httpx.AsyncClient(transport=transport, base_url="http://journal") as client:
        responses = await asyncio.gather(
            client.post("/tags", json={"name": "tag-of-A"}, headers={"Authorization": "Bearer A"}),
            client.post("/tags", json={"name": "tag-of-B"}, headers={"Authorization": "Bearer B"}),
        )

    assert [r.status_code for r in responses] == [201, 201]
    owners = {row["name"]: row["user_id"] for row in store.rows(Tables.TAGS)}
    assert owners == {"tag-of-A": "user-A", "tag-of-B": "user-B"}
    assert [t.name for t in controller.graph_for("user-A").tags()] == ["tag-of-A"]
    assert [t.name for t in controller.graph_for("user-B").tags()] == ["tag-of-B"]
