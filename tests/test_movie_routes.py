"""
tests/test_movie_routes.py -- Integration tests for /api/v1/movies.

Focus is the guard matrix: anonymous vs. owner vs. other user vs. admin
across create / update / delete and the admin-only routes. The movie store
itself is exercised through these routes.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import ADMIN_PASSWORD, Harness, login, register

ALIEN = {"title": "Alien", "year": 1979, "director": "Ridley Scott", "genre": ["Horror", "Sci-Fi"], "rating": 8.5}


def _as(client: TestClient, username: str, password: str = "secret1") -> None:
    client.cookies.clear()
    login(client, username, password)


@pytest.fixture
def owned_movie(harness: Harness) -> dict:
    """alice owns one movie; bob exists. Leaves the client logged in as alice."""
    client = harness.client
    register(client, "bob")
    client.cookies.clear()
    register(client, "alice")
    resp = client.post("/api/v1/movies", json=ALIEN)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreate:
    def test_anonymous_cannot_create(self, client: TestClient) -> None:
        resp = client.post("/api/v1/movies", json=ALIEN)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"

    def test_creator_is_recorded(self, harness: Harness) -> None:
        client = harness.client
        user = register(client, "alice")["user"]
        movie = client.post("/api/v1/movies", json=ALIEN).json()
        assert movie["created_by"] == user["id"]
        assert movie["updated_by"] == user["id"]
        assert movie["genre"] == ["Horror", "Sci-Fi"]

    def test_genre_string_is_accepted(self, client: TestClient) -> None:
        register(client, "alice")
        movie = client.post("/api/v1/movies", json={"title": "Heat", "year": 1995, "genre": "Crime"}).json()
        assert movie["genre"] == ["Crime"]

    @pytest.mark.parametrize(
        "body",
        [
            {"year": 1999},
            {"title": "   ", "year": 1999},
            {"title": "Too Early", "year": 1700},
            {"title": "Bad Rating", "year": 1999, "rating": 11},
            {"title": "Bad Age", "year": 1999, "age_rating": "21+"},
        ],
    )
    def test_invalid_body_is_422(self, client: TestClient, body: dict) -> None:
        register(client, "alice")
        resp = client.post("/api/v1/movies", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestPublicReads:
    def test_list_and_get_need_no_session(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        client.cookies.clear()
        listing = client.get("/api/v1/movies")
        assert listing.status_code == 200
        assert listing.json()["movies"][0]["title"] == "Alien"
        assert client.get(f"/api/v1/movies/{owned_movie['id']}").json()["title"] == "Alien"

    def test_get_missing_movie(self, client: TestClient) -> None:
        resp = client.get("/api/v1/movies/9999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_pagination(self, client: TestClient) -> None:
        register(client, "alice")
        for i in range(5):
            client.post("/api/v1/movies", json={"title": f"Movie {i}", "year": 2000 + i})
        data = client.get("/api/v1/movies", params={"page": 2, "limit": 2}).json()
        assert [m["title"] for m in data["movies"]] == ["Movie 2", "Movie 1"]
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3, "has_more": True}


class TestOwnership:
    def test_owner_can_update(self, harness: Harness, owned_movie: dict) -> None:
        resp = harness.client.put(f"/api/v1/movies/{owned_movie['id']}", json={"rating": 9.0})
        assert resp.status_code == 200
        assert resp.json()["rating"] == 9.0
        assert resp.json()["title"] == "Alien"

    def test_other_user_cannot_update_or_delete(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        _as(client, "bob")
        put = client.put(f"/api/v1/movies/{owned_movie['id']}", json={"rating": 1.0})
        delete = client.delete(f"/api/v1/movies/{owned_movie['id']}")
        assert put.status_code == delete.status_code == 403
        assert put.json()["error"]["code"] == "forbidden"
        assert client.get(f"/api/v1/movies/{owned_movie['id']}").json()["rating"] == 8.5

    def test_admin_can_update_any_movie(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        _as(client, "admin", ADMIN_PASSWORD)
        resp = client.put(f"/api/v1/movies/{owned_movie['id']}", json={"title": "Aliens", "year": 1986})
        assert resp.status_code == 200
        assert resp.json()["updated_by"] == harness.admin_id
        assert resp.json()["created_by"] == owned_movie["created_by"]

    def test_owner_can_delete(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        resp = client.delete(f"/api/v1/movies/{owned_movie['id']}")
        assert resp.status_code == 200
        assert client.get(f"/api/v1/movies/{owned_movie['id']}").status_code == 404

    def test_missing_movie_is_404_for_non_admin(self, client: TestClient) -> None:
        register(client, "alice")
        assert client.put("/api/v1/movies/9999", json={"rating": 1}).status_code == 404
        assert client.delete("/api/v1/movies/9999").status_code == 404

    def test_anonymous_update_is_401(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        client.cookies.clear()
        assert client.put(f"/api/v1/movies/{owned_movie['id']}", json={"rating": 1}).status_code == 401


class TestAdminRoutes:
    def test_admin_lists_all(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        _as(client, "admin", ADMIN_PASSWORD)
        resp = client.get("/api/v1/movies/admin/all")
        assert resp.status_code == 200
        assert [m["id"] for m in resp.json()] == [owned_movie["id"]]

    def test_admin_deletes_any(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        _as(client, "admin", ADMIN_PASSWORD)
        resp = client.delete(f"/api/v1/movies/admin/{owned_movie['id']}")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Movie deleted by admin"}
        assert client.delete(f"/api/v1/movies/admin/{owned_movie['id']}").status_code == 404

    def test_owner_is_not_admin(self, harness: Harness, owned_movie: dict) -> None:
        client = harness.client
        assert client.get("/api/v1/movies/admin/all").status_code == 403
        assert client.delete(f"/api/v1/movies/admin/{owned_movie['id']}").status_code == 403

    def test_anonymous_admin_route_is_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/movies/admin/all").status_code == 401
