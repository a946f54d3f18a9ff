"""
tests/test_api_routes.py -- Integration tests for the HTTP API.

These tests exercise the full stack: FastAPI routing -> auth gate dependency
-> UserStore/ArticleStore/FavoritesEngine -> response model serialization.

Coverage:
  - Registration, login, current user, profile update and password change
  - 422 field-scoped errors for validation, duplicates and bad credentials
  - 401 on required routes without a valid "Token" header; optional routes fail open
  - Article CRUD, ownership (403), slug stability, 204 on delete
  - Favorite / unfavorite with count recomputation
  - Health endpoint

Fixtures used (from conftest.py):
  - api_client: (client, token_service) -- one isolated database per module
"""

from __future__ import annotations

import re

from fastapi.testclient import TestClient

from auth.models import User
from auth.tokens import TokenService
from conftest import TEST_SECRET, auth_header, register


def _create_article(client: TestClient, token: str, title: str = "Hello World", **extra) -> dict:
    resp = client.post(
        "/api/articles",
        json={"article": {"title": title, "description": "d", "body": "b", **extra}},
        headers=auth_header(token),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["article"]


class TestEndToEnd:
    """Register -> login -> publish -> favorite -> unfavorite."""

    def test_full_flow(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, tokens = api_client
        register(client, "ana", password="p@ss1234")

        resp = client.post("/api/users/login", json={"user": {"email": "ana@example.com", "password": "p@ss1234"}})
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-store"
        ana_token = resp.json()["user"]["token"]
        assert tokens.validate(ana_token).username == "ana"

        article = _create_article(client, ana_token, title="Hello World")
        assert re.fullmatch(r"hello-world-[0-9a-z]{6}", article["slug"])
        assert article["favoritesCount"] == 0
        assert article["favorited"] is False
        assert article["author"]["username"] == "ana"

        bob_token = register(client, "bobby")["token"]
        slug = article["slug"]

        resp = client.post(f"/api/articles/{slug}/favorite", headers=auth_header(bob_token))
        assert resp.status_code == 200
        assert resp.json()["article"]["favoritesCount"] == 1
        assert resp.json()["article"]["favorited"] is True

        resp = client.post(f"/api/articles/{slug}/favorite", headers=auth_header(bob_token))
        assert resp.json()["article"]["favoritesCount"] == 1

        resp = client.delete(f"/api/articles/{slug}/favorite", headers=auth_header(bob_token))
        assert resp.status_code == 200
        assert resp.json()["article"]["favoritesCount"] == 0
        assert resp.json()["article"]["favorited"] is False


class TestUsers:
    def test_register_normalizes_case(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.post(
            "/api/users",
            json={"user": {"username": "Carla", "email": "Carla@Example.com", "password": "secret"}},
        )
        assert resp.status_code == 200
        body = resp.json()["user"]
        assert body["username"] == "carla"
        assert body["email"] == "carla@example.com"
        assert body["token"]

    def test_duplicate_username(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        register(client, "dup")
        resp = client.post(
            "/api/users",
            json={"user": {"username": "dup", "email": "dup2@example.com", "password": "x"}},
        )
        assert resp.status_code == 422
        assert resp.json() == {"errors": {"username": ["has already been taken"]}}

    def test_missing_password(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.post("/api/users", json={"user": {"username": "nopass", "email": "nopass@example.com"}})
        assert resp.status_code == 422
        assert resp.json()["errors"]["password"] == ["can't be blank"]

    def test_invalid_email(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.post("/api/users", json={"user": {"username": "bademail", "email": "nope", "password": "x"}})
        assert resp.status_code == 422
        assert resp.json()["errors"]["email"] == ["is invalid"]

    def test_wrong_password_and_unknown_email_look_the_same(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        register(client, "dora", password="right")
        wrong = client.post("/api/users/login", json={"user": {"email": "dora@example.com", "password": "wrong"}})
        unknown = client.post("/api/users/login", json={"user": {"email": "ghost@example.com", "password": "right"}})
        assert wrong.status_code == unknown.status_code == 422
        assert wrong.json() == unknown.json() == {"errors": {"email or password": ["is invalid"]}}

    def test_current_user(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "emil")["token"]
        resp = client.get("/api/user", headers=auth_header(token))
        assert resp.status_code == 200
        assert resp.json()["user"]["username"] == "emil"

    def test_password_change(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "fern", password="first")
        resp = client.put(
            "/api/user",
            json={"user": {"password": "second", "bio": "hello"}},
            headers=auth_header(token["token"]),
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["bio"] == "hello"

        old = client.post("/api/users/login", json={"user": {"email": "fern@example.com", "password": "first"}})
        new = client.post("/api/users/login", json={"user": {"email": "fern@example.com", "password": "second"}})
        assert old.status_code == 422
        assert new.status_code == 200

    def test_rename_reissues_token(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, tokens = api_client
        token = register(client, "gus")["token"]
        resp = client.put("/api/user", json={"user": {"username": "gustav"}}, headers=auth_header(token))
        assert resp.status_code == 200
        assert tokens.validate(resp.json()["user"]["token"]).username == "gustav"

    def test_profile(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        register(client, "hana")
        resp = client.get("/api/profiles/hana")
        assert resp.status_code == 200
        assert resp.json()["profile"]["username"] == "hana"
        assert resp.json()["profile"]["following"] is False

    def test_unknown_profile(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.get("/api/profiles/nobody")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"


class TestAuthGate:
    """Required routes reject; optional routes treat bad tokens as anonymous."""

    def test_no_header(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.get("/api/user")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_bearer_scheme_rejected(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "ivan")["token"]
        resp = client.get("/api/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_token_for_missing_user(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, tokens = api_client
        ghost = tokens.issue(User(username="ghost", email="ghost@example.com", id=987654))
        assert client.get("/api/user", headers=auth_header(ghost)).status_code == 401

    def test_expired_token_on_required_route(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        stale = TokenService(secret_key=TEST_SECRET, expire_seconds=60, clock=lambda: 1_000_000)
        token = stale.issue(User(username="old", email="old@example.com", id=1))
        assert client.get("/api/user", headers=auth_header(token)).status_code == 401

    def test_expired_token_on_optional_route(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        stale = TokenService(secret_key=TEST_SECRET, expire_seconds=60, clock=lambda: 1_000_000)
        token = stale.issue(User(username="old", email="old@example.com", id=1))
        assert client.get("/api/articles", headers=auth_header(token)).status_code == 200

    def test_create_article_requires_token(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        resp = client.post("/api/articles", json={"article": {"title": "x"}})
        assert resp.status_code == 401


class TestArticles:
    def test_get_by_slug(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "jack")["token"]
        article = _create_article(client, token, title="Readable", tagList=["a", "b"])
        resp = client.get(f"/api/articles/{article['slug']}")
        assert resp.status_code == 200
        assert resp.json()["article"]["tagList"] == ["a", "b"]

    def test_missing_title(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "kate")["token"]
        resp = client.post("/api/articles", json={"article": {"body": "b"}}, headers=auth_header(token))
        assert resp.status_code == 422
        assert resp.json()["errors"]["title"] == ["can't be blank"]

    def test_update_keeps_slug(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "liam")["token"]
        article = _create_article(client, token, title="Before")
        resp = client.put(
            f"/api/articles/{article['slug']}",
            json={"article": {"title": "After"}},
            headers=auth_header(token),
        )
        assert resp.status_code == 200
        assert resp.json()["article"]["title"] == "After"
        assert resp.json()["article"]["slug"] == article["slug"]
        assert resp.json()["article"]["body"] == "b"

    def test_non_owner_cannot_edit_or_delete(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        owner = register(client, "mona")["token"]
        other = register(client, "nick")["token"]
        slug = _create_article(client, owner, title="Mine")["slug"]

        resp = client.put(f"/api/articles/{slug}", json={"article": {"title": "Yours"}}, headers=auth_header(other))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"
        assert client.delete(f"/api/articles/{slug}", headers=auth_header(other)).status_code == 403

    def test_delete(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "olga")["token"]
        slug = _create_article(client, token, title="Short lived")["slug"]
        client.post(f"/api/articles/{slug}/favorite", headers=auth_header(token))

        resp = client.delete(f"/api/articles/{slug}", headers=auth_header(token))
        assert resp.status_code == 204
        assert client.get(f"/api/articles/{slug}").status_code == 404
        assert client.get("/api/articles", params={"favorited": "olga"}).json()["articlesCount"] == 0

    def test_list_filters(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        author = register(client, "pete")["token"]
        fan = register(client, "quinn")["token"]
        first = _create_article(client, author, title="One")
        _create_article(client, author, title="Two")
        client.post(f"/api/articles/{first['slug']}/favorite", headers=auth_header(fan))

        by_author = client.get("/api/articles", params={"author": "pete"}).json()
        assert by_author["articlesCount"] == 2
        assert [a["title"] for a in by_author["articles"]] == ["Two", "One"]

        favorited = client.get("/api/articles", params={"favorited": "quinn"}, headers=auth_header(fan)).json()
        assert favorited["articlesCount"] == 1
        assert favorited["articles"][0]["favorited"] is True

        assert client.get("/api/articles", params={"author": "nobody"}).json()["articlesCount"] == 0

    def test_favorite_unknown_article(self, api_client: tuple[TestClient, TokenService]) -> None:
        client, _ = api_client
        token = register(client, "rita")["token"]
        assert client.post("/api/articles/no-such-slug/favorite", headers=auth_header(token)).status_code == 404


def test_health(api_client: tuple[TestClient, TokenService]) -> None:
    client, _ = api_client
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["version"]
