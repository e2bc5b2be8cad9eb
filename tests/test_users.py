"""
User endpoint tests: creation, listing, detail (with articles) and account
deletion with either article reassignment or article deletion.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(client: AsyncClient, username: str) -> int:
    resp = await client.post("/api/v1/users", json={
        "username": username,
        "email": f"{username}@example.com",
    })
    assert resp.status_code == 201
    return resp.json()["id"]


async def _create_article(client: AsyncClient, author_id: int, title: str) -> int:
    resp = await client.post("/api/v1/articles", json={
        "title": title,
        "content": "Body",
        "author_id": author_id,
    })
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Create user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_user(async_client: AsyncClient):
    """Creating a user with all fields returns 201 and all provided data."""
    resp = await async_client.post("/api/v1/users", json={
        "username": "newuser",
        "email": "newuser@example.com",
        "display_name": "New User",
        "bio": "I am new here",
    })
    assert resp.status_code == 201
    user = resp.json()
    assert user["username"] == "newuser"
    assert user["email"] == "newuser@example.com"
    assert user["display_name"] == "New User"
    assert user["bio"] == "I am new here"
    assert "id" in user
    assert user["created_at"] is not None


@pytest.mark.asyncio
async def test_create_user_minimal_fields(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json={
        "username": "minimal",
        "email": "minimal@example.com",
    })
    assert resp.status_code == 201
    assert resp.json()["display_name"] is None


@pytest.mark.asyncio
async def test_create_user_missing_username(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json={"email": "nousername@example.com"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_user_duplicate_username(async_client: AsyncClient):
    """A duplicate username is a 409 Conflict, not a 500."""
    await _create_user(async_client, "dup_user")
    resp = await async_client.post("/api/v1/users", json={
        "username": "dup_user",
        "email": "other@example.com",
    })
    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# List / detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_list_users(async_client: AsyncClient):
    await _create_user(async_client, "first")
    await _create_user(async_client, "second")
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 200
    assert {u["username"] for u in resp.json()} == {"first", "second"}


@pytest.mark.asyncio
async def test_get_user_with_articles(async_client: AsyncClient):
    user_id = await _create_user(async_client, "author")
    article_id = await _create_article(async_client, user_id, "My Post")

    resp = await async_client.get(f"/api/v1/users/{user_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "author"
    assert [a["id"] for a in body["articles"]] == [article_id]


@pytest.mark.asyncio
async def test_get_user_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/99999")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Delete user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_user_reassigns_articles(async_client: AsyncClient):
    leaving = await _create_user(async_client, "leaving")
    heir = await _create_user(async_client, "heir")
    a1 = await _create_article(async_client, leaving, "Legacy One")
    a2 = await _create_article(async_client, leaving, "Legacy Two")

    resp = await async_client.delete(f"/api/v1/users/{leaving}", params={"new_author_id": heir})
    assert resp.status_code == 200
    assert resp.json()["username"] == "leaving"

    assert (await async_client.get(f"/api/v1/users/{leaving}")).status_code == 404
    heir_detail = (await async_client.get(f"/api/v1/users/{heir}")).json()
    assert sorted(a["id"] for a in heir_detail["articles"]) == sorted([a1, a2])


@pytest.mark.asyncio
async def test_delete_user_deletes_articles(async_client: AsyncClient):
    leaving = await _create_user(async_client, "leaving")
    other = await _create_user(async_client, "other")
    doomed = await _create_article(async_client, leaving, "Doomed")
    kept = await _create_article(async_client, other, "Kept")

    resp = await async_client.delete(f"/api/v1/users/{leaving}")
    assert resp.status_code == 200

    assert (await async_client.get(f"/api/v1/articles/{doomed}")).status_code == 404
    assert (await async_client.get(f"/api/v1/articles/{kept}")).status_code == 200


@pytest.mark.asyncio
async def test_delete_missing_user_returns_404(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/users/4242")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User with id 4242 not found"


@pytest.mark.asyncio
async def test_delete_user_with_unknown_new_author(async_client: AsyncClient):
    leaving = await _create_user(async_client, "leaving")
    article_id = await _create_article(async_client, leaving, "Stays Put")

    resp = await async_client.delete(f"/api/v1/users/{leaving}", params={"new_author_id": 777})
    assert resp.status_code == 404

    article = (await async_client.get(f"/api/v1/articles/{article_id}")).json()
    assert article["author_id"] == leaving


@pytest.mark.asyncio
async def test_delete_user_rejects_non_integer_new_author(async_client: AsyncClient):
    leaving = await _create_user(async_client, "leaving")
    resp = await async_client.delete(f"/api/v1/users/{leaving}", params={"new_author_id": "abc"})
    assert resp.status_code == 422
    assert (await async_client.get(f"/api/v1/users/{leaving}")).status_code == 200
