"""
Comment endpoint tests: creation, listing with author profiles and the
404 path for unknown articles.
"""
import pytest
from httpx import AsyncClient


async def _create_article(client: AsyncClient) -> str:
    resp = await client.post("/api/articles", json={
        "article": {"title": "Commentable", "description": "d", "body": "b"},
    })
    assert resp.status_code == 201
    return resp.json()["article"]["slug"]


@pytest.mark.asyncio
async def test_add_and_list_comments(async_client: AsyncClient, make_user, make_follow, login):
    alice = await make_user("alice")
    bob = await make_user("bob", bio="reader")
    login(alice)
    slug = await _create_article(async_client)

    login(bob)
    resp = await async_client.post(
        f"/api/articles/{slug}/comments", json={"comment": {"body": "Great post!"}}
    )
    assert resp.status_code == 201
    comment = resp.json()["comment"]
    assert comment["body"] == "Great post!"
    assert comment["author"]["username"] == "bob"
    assert comment["author"]["bio"] == "reader"
    assert "createdAt" in comment

    await make_follow(alice, bob)
    login(alice)
    resp = await async_client.get(f"/api/articles/{slug}/comments")
    assert resp.status_code == 200
    comments = resp.json()["comments"]
    assert len(comments) == 1
    assert comments[0]["author"]["following"] is True


@pytest.mark.asyncio
async def test_comment_requires_authentication(async_client: AsyncClient, make_user, login):
    login(await make_user("alice"))
    slug = await _create_article(async_client)

    login(None)
    resp = await async_client.post(
        f"/api/articles/{slug}/comments", json={"comment": {"body": "anon"}}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_comment_on_unknown_article(async_client: AsyncClient, make_user, login):
    login(await make_user("bob"))
    resp = await async_client.post(
        "/api/articles/missing/comments", json={"comment": {"body": "hello?"}}
    )
    assert resp.status_code == 404
    assert (await async_client.get("/api/articles/missing/comments")).status_code == 404


@pytest.mark.asyncio
async def test_blank_comment_rejected(async_client: AsyncClient, make_user, login):
    login(await make_user("alice"))
    slug = await _create_article(async_client)

    resp = await async_client.post(
        f"/api/articles/{slug}/comments", json={"comment": {"body": "  "}}
    )
    assert resp.status_code == 422
