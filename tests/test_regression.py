"""
Regression tests for issues found during code review.

1. Unique constraint violations must return 409 (not 500)
2. X-Query-Count / X-Write-Count headers must report real statement counts
3. A merge with nothing to merge must not write
4. CORS must not set allow_credentials=true with allow_origins=*
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# 1. Unique constraint violations -> 409
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_duplicate_email_returns_409(async_client: AsyncClient):
    await async_client.post("/api/v1/users", json={
        "username": "emailuser1", "email": "same@example.com",
    })
    resp = await async_client.post("/api/v1/users", json={
        "username": "emailuser2", "email": "same@example.com",
    })
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_article_slug_collision_handled(async_client: AsyncClient):
    """Renaming an article onto another article's title must not 500."""
    user_resp = await async_client.post("/api/v1/users", json={
        "username": "slug_col", "email": "slug_col@example.com",
    })
    user_id = user_resp.json()["id"]

    resp1 = await async_client.post("/api/v1/articles", json={
        "title": "First Article", "content": "A", "author_id": user_id,
    })
    resp2 = await async_client.post("/api/v1/articles", json={
        "title": "Second Article", "content": "B", "author_id": user_id,
    })
    article2_id = resp2.json()["id"]

    resp = await async_client.put(f"/api/v1/articles/{article2_id}", json={"title": "First Article"})
    assert resp.status_code == 200
    assert resp.json()["slug"] != resp1.json()["slug"]


# ---------------------------------------------------------------------------
# 2. Statement counters
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_exact_for_article_list(async_client: AsyncClient):
    """COUNT + SELECT(joinedload author) + selectinload(categories) = 3 queries."""
    user_resp = await async_client.post("/api/v1/users", json={
        "username": "qctest", "email": "qctest@example.com",
    })
    await async_client.post("/api/v1/articles", json={
        "title": "QC Article", "content": "Content", "author_id": user_resp.json()["id"],
    })

    resp = await async_client.get("/api/v1/articles")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 3, f"Expected exactly 3 queries for article list, got {count}"
    assert resp.headers["x-write-count"] == "0"


@pytest.mark.asyncio
async def test_write_count_header_for_upvote(async_client: AsyncClient):
    user_resp = await async_client.post("/api/v1/users", json={
        "username": "voter", "email": "voter@example.com",
    })
    art_resp = await async_client.post("/api/v1/articles", json={
        "title": "Vote Me", "content": "Content", "author_id": user_resp.json()["id"],
    })

    resp = await async_client.post(f"/api/v1/articles/{art_resp.json()['id']}/upvote")
    assert resp.status_code == 200
    assert resp.headers["x-write-count"] == "1"


# ---------------------------------------------------------------------------
# 3. No-op merge
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_noop_merge_issues_no_writes(async_client: AsyncClient):
    await async_client.post("/api/v1/categories", json={"name": "unique-a"})
    await async_client.post("/api/v1/categories", json={"name": "unique-b"})

    resp = await async_client.post("/api/v1/categories/merge")
    assert resp.status_code == 200
    assert resp.headers["x-write-count"] == "0"


# ---------------------------------------------------------------------------
# 4. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    resp = await async_client.options(
        "/api/v1/articles",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true", (
        "CORS must not combine allow_origins=* with allow_credentials=true"
    )
