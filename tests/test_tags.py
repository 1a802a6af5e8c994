"""
Popular tags endpoint tests.
"""
import pytest
from httpx import AsyncClient


def _auth(token: str) -> dict:
    return {"Authorization": f"Token {token}"}


@pytest.mark.asyncio
async def test_tags_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/tags")
    assert resp.status_code == 200
    assert resp.json() == {"tags": []}


@pytest.mark.asyncio
async def test_tags_ordered_by_usage(async_client: AsyncClient, register, create_article):
    alice = await register("alice")
    await create_article(alice["token"], "one", tags=["python", "web"])
    await create_article(alice["token"], "two", tags=["python"])
    await create_article(alice["token"], "three", tags=["python", "web", "async"])

    resp = await async_client.get("/api/tags")
    assert resp.json()["tags"] == ["python", "web", "async"]


@pytest.mark.asyncio
async def test_tags_limited_to_ten(async_client: AsyncClient, register, create_article):
    alice = await register("alice")
    await create_article(alice["token"], "many", tags=[f"tag{i:02d}" for i in range(12)])
    # tag11 becomes the single most used one.
    await create_article(alice["token"], "again", tags=["tag11"])

    tags = (await async_client.get("/api/tags")).json()["tags"]
    assert len(tags) == 10
    assert tags[0] == "tag11"


@pytest.mark.asyncio
async def test_tags_of_deleted_article_not_counted(async_client: AsyncClient, register, create_article):
    alice = await register("alice")
    kept = await create_article(alice["token"], "kept", tags=["stay"])
    doomed = await create_article(alice["token"], "doomed", tags=["leave"])
    assert kept["tagList"] == ["stay"]

    before = (await async_client.get("/api/tags")).json()["tags"]
    assert set(before) == {"stay", "leave"}

    await async_client.delete(f"/api/articles/{doomed['slug']}", headers=_auth(alice["token"]))
    after = (await async_client.get("/api/tags")).json()["tags"]
    assert after == ["stay"]


@pytest.mark.asyncio
async def test_existing_tag_reused(async_client: AsyncClient, register, create_article):
    alice = await register("alice")
    bob = await register("bob")
    await create_article(alice["token"], "a", tags=["shared"])
    await create_article(bob["token"], "b", tags=["shared"])

    resp = await async_client.get("/api/articles", params={"tag": "shared"})
    assert resp.json()["articlesCount"] == 2
    assert (await async_client.get("/api/tags")).json()["tags"] == ["shared"]
