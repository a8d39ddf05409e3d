"""
Post endpoint tests: covers the CRUD lifecycle, visibility, ownership,
pagination and diagnostic response headers.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.models import Comment, Like, Post, PostStatus, User

from tests.conftest import auth_headers, create_post


def _payload(**overrides) -> dict:
    data = {
        "title": "My first post",
        "description": "What this post is about",
        "content": "<p>Body</p>",
        "tag_names": ["python", "fastapi"],
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/posts/public")
    assert resp.status_code == 200
    assert "x-response-time-ms" in resp.headers
    assert int(resp.headers["x-query-count"]) >= 1


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_post(async_client: AsyncClient, user: User):
    resp = await async_client.post("/api/v1/posts", json=_payload(), headers=auth_headers(user))
    assert resp.status_code == 201
    data = resp.json()
    assert data["title"] == "My first post"
    assert data["status"] == "PUBLIC"
    assert data["user_id"] == user.id
    assert sorted(t["name"] for t in data["tags"]) == ["fastapi", "python"]

    detail = await async_client.get(f"/api/v1/posts/public/{data['id']}")
    assert detail.status_code == 200
    assert detail.json()["content"] == "<p>Body</p>"


@pytest.mark.asyncio
async def test_create_post_requires_auth(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/posts", json=_payload())
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_post_with_invalid_token(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/posts", json=_payload(), headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_post_missing_title(async_client: AsyncClient, user: User):
    payload = _payload()
    del payload["title"]
    resp = await async_client.post("/api/v1/posts", json=payload, headers=auth_headers(user))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_post_unknown_category(async_client: AsyncClient, user: User):
    resp = await async_client.post(
        "/api/v1/posts", json=_payload(category_id=42), headers=auth_headers(user)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_non_numeric_post_id(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/posts/public/abc")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_missing_post(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/posts/public/999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Post not found"


@pytest.mark.asyncio
async def test_private_post_visibility(
    async_client: AsyncClient, db_session: AsyncSession, user: User, other_user: User, admin: User
):
    post = await create_post(db_session, user, PostStatus.PRIVATE)

    assert (await async_client.get(f"/api/v1/posts/public/{post.id}")).status_code == 403
    resp = await async_client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(other_user))
    assert resp.status_code == 403
    resp = await async_client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(user))
    assert resp.status_code == 200
    resp = await async_client.get(f"/api/v1/posts/{post.id}", headers=auth_headers(admin))
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Listing and counts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_public_posts_pagination(
    async_client: AsyncClient, db_session: AsyncSession, user: User
):
    for i in range(17):
        await create_post(db_session, user, title=f"Public {i}")
    await create_post(db_session, user, PostStatus.PRIVATE, title="Hidden")

    first = (await async_client.get("/api/v1/posts/public")).json()
    assert len(first["posts"]) == 15
    assert first["total"] == 17
    assert first["limit"] == 15

    second = (await async_client.get("/api/v1/posts/public?page=2")).json()
    assert len(second["posts"]) == 2
    assert all(p["status"] == "PUBLIC" for p in first["posts"] + second["posts"])

    beyond = await async_client.get("/api/v1/posts/public?page=10&limit=5")
    assert beyond.status_code == 200
    assert beyond.json()["posts"] == []
    assert beyond.json()["total"] == 17


@pytest.mark.asyncio
async def test_list_public_posts_rejects_bad_paging(async_client: AsyncClient):
    assert (await async_client.get("/api/v1/posts/public?page=0")).status_code == 400
    assert (await async_client.get("/api/v1/posts/public?limit=0")).status_code == 400
    assert (await async_client.get("/api/v1/posts/public?limit=500")).status_code == 400


@pytest.mark.asyncio
async def test_list_public_posts_huge_page_is_empty(
    async_client: AsyncClient, db_session: AsyncSession, user: User
):
    for i in range(3):
        await create_post(db_session, user, title=f"Public {i}")

    resp = await async_client.get(f"/api/v1/posts/public?page={10**18}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["posts"] == []
    assert data["total"] == 3
    assert data["page"] == 10**18


@pytest.mark.asyncio
async def test_list_public_posts_page_size_bounds(async_client: AsyncClient):
    resp = await async_client.get(f"/api/v1/posts/public?limit={settings.MAX_PAGE_SIZE}")
    assert resp.status_code == 200
    assert resp.json()["limit"] == settings.MAX_PAGE_SIZE

    resp = await async_client.get(f"/api/v1/posts/public?limit={settings.MAX_PAGE_SIZE + 1}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_listing_includes_private(
    async_client: AsyncClient, db_session: AsyncSession, user: User, admin: User
):
    await create_post(db_session, user)
    await create_post(db_session, user, PostStatus.PRIVATE)

    resp = await async_client.get("/api/v1/posts", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["total"] == 2

    resp = await async_client.get("/api/v1/posts", headers=auth_headers(user))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_post_counts(
    async_client: AsyncClient, db_session: AsyncSession, user: User, admin: User
):
    await create_post(db_session, user)
    await create_post(db_session, user)
    await create_post(db_session, user, PostStatus.PRIVATE)

    resp = await async_client.get("/api/v1/posts/public/count")
    assert resp.json() == {"post_count": 2}
    resp = await async_client.get("/api/v1/posts/count", headers=auth_headers(admin))
    assert resp.json() == {"post_count": 3}


@pytest.mark.asyncio
async def test_list_user_posts(async_client: AsyncClient, db_session: AsyncSession, user: User):
    await create_post(db_session, user, title="Visible")
    await create_post(db_session, user, PostStatus.PRIVATE, title="Hidden")

    resp = await async_client.get(f"/api/v1/users/{user.id}/posts")
    assert resp.status_code == 200
    assert [p["title"] for p in resp.json()] == ["Visible"]
    assert (await async_client.get("/api/v1/users/999/posts")).status_code == 404


# ---------------------------------------------------------------------------
# Update / status
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_post(async_client: AsyncClient, db_session: AsyncSession, user: User):
    post = await create_post(db_session, user)
    resp = await async_client.put(
        f"/api/v1/posts/{post.id}",
        json=_payload(title="Renamed", status="PRIVATE", tag_names=["sql"]),
        headers=auth_headers(user),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Renamed"
    assert data["status"] == "PRIVATE"
    assert [t["name"] for t in data["tags"]] == ["sql"]


@pytest.mark.asyncio
async def test_update_post_requires_every_field(
    async_client: AsyncClient, db_session: AsyncSession, user: User
):
    post = await create_post(db_session, user)
    resp = await async_client.put(
        f"/api/v1/posts/{post.id}", json={"title": "Only title"}, headers=auth_headers(user)
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_post_by_other_user(
    async_client: AsyncClient, db_session: AsyncSession, user: User, other_user: User
):
    post = await create_post(db_session, user)
    resp = await async_client.put(
        f"/api/v1/posts/{post.id}",
        json=_payload(status="PUBLIC"),
        headers=auth_headers(other_user),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_post_status(
    async_client: AsyncClient, db_session: AsyncSession, user: User, other_user: User
):
    post = await create_post(db_session, user)

    resp = await async_client.patch(
        f"/api/v1/posts/{post.id}/status", json={"status": "PRIVATE"},
        headers=auth_headers(other_user),
    )
    assert resp.status_code == 403

    resp = await async_client.patch(
        f"/api/v1/posts/{post.id}/status", json={"status": "PRIVATE"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 204
    assert (await async_client.get(f"/api/v1/posts/public/{post.id}")).status_code == 403

    resp = await async_client.patch(
        f"/api/v1/posts/{post.id}/status", json={"status": "DRAFT"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_post_cascades(
    async_client: AsyncClient, db_session: AsyncSession, user: User, other_user: User
):
    post = await create_post(db_session, user)
    headers = auth_headers(other_user)

    root = await async_client.post(
        f"/api/v1/posts/{post.id}/comments", json={"content": "Nice"}, headers=headers
    )
    await async_client.post(
        f"/api/v1/posts/{post.id}/comments",
        json={"content": "Thanks", "parent_id": root.json()["id"]},
        headers=auth_headers(user),
    )
    await async_client.post(f"/api/v1/likes/posts/{post.id}", headers=headers)

    resp = await async_client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(user))
    assert resp.status_code == 204

    assert (await async_client.get(f"/api/v1/posts/{post.id}", headers=headers)).status_code == 404
    for model in (Post, Comment, Like):
        count = (await db_session.execute(select(func.count()).select_from(model))).scalar_one()
        assert count == 0


@pytest.mark.asyncio
async def test_delete_post_by_other_user_is_forbidden(
    async_client: AsyncClient, db_session: AsyncSession, user: User, other_user: User
):
    post = await create_post(db_session, user)
    resp = await async_client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(other_user))
    assert resp.status_code == 403
    assert (await async_client.get(f"/api/v1/posts/public/{post.id}")).status_code == 200


@pytest.mark.asyncio
async def test_admin_deletes_any_post(
    async_client: AsyncClient, db_session: AsyncSession, user: User, admin: User
):
    post = await create_post(db_session, user)
    resp = await async_client.delete(f"/api/v1/posts/{post.id}", headers=auth_headers(admin))
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_delete_missing_post(async_client: AsyncClient, user: User):
    resp = await async_client.delete("/api/v1/posts/999", headers=auth_headers(user))
    assert resp.status_code == 404
