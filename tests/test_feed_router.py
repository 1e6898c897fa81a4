"""Tests for the HTTP surface."""

import pytest
from httpx import ASGITransport, AsyncClient

from feedrank.database import get_db
from feedrank.main import app
from feedrank.routers.feed import get_quality_scorer


@pytest.fixture
async def client(session, scorer):
    async def override_db():
        yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_quality_scorer] = lambda: scorer
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def feed_world(world):
    for name in ("viewer", "friend", "stranger"):
        world.user(name)
    world.interest("python")
    world.interest("rust")
    world.follow("viewer", "friend")
    world.post("pf", "friend", content="hi from a friend", interest="python", hours_ago=2)
    world.post("ps", "stranger", content="hi from afar", interest="rust", hours_ago=1)
    world.quote("q1", "friend", parent="ps", content="agreed", interest="rust", hours_ago=0.5)
    await world.commit()
    return world


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_for_you_returns_camel_case_cards(client, feed_world, scorer):
    scorer.scores = {"pf": 0.5}

    response = await client.get("/feed/for-you", params={"user_id": "viewer"})

    assert response.status_code == 200
    posts = response.json()["posts"]
    assert {p["postId"] for p in posts} == {"pf", "ps", "q1"}
    quote = next(p for p in posts if p["postId"] == "q1")
    assert quote["isQuote"] is True
    assert quote["text"] == "agreed"
    assert quote["originalPostData"]["postId"] == "ps"
    assert quote["originalPostData"]["username"] == "stranger"
    assert {"personalizationScore", "qualityScore", "finalScore"} <= set(quote)
    assert len(scorer.calls) == 1


async def test_following_requires_user_id(client, feed_world):
    response = await client.get("/feed/following")

    assert response.status_code == 422


async def test_following_feed(client, feed_world):
    response = await client.get("/feed/following", params={"user_id": "viewer", "limit": 1})

    assert response.status_code == 200
    assert [p["postId"] for p in response.json()["posts"]] == ["q1"]


async def test_explore_accepts_repeated_interests(client, feed_world, scorer):
    response = await client.get(
        "/feed/explore",
        params=[
            ("user_id", "viewer"),
            ("interests", "python"),
            ("interests", "rust"),
            ("sort_by", "latest"),
        ],
    )

    assert response.status_code == 200
    assert [p["postId"] for p in response.json()["posts"]] == ["q1", "ps", "pf"]
    assert scorer.calls == []


async def test_explore_rejects_unknown_sort_mode(client, feed_world):
    response = await client.get(
        "/feed/explore",
        params={"user_id": "viewer", "interests": "python", "sort_by": "random"},
    )

    assert response.status_code == 422


async def test_explore_all_groups_by_interest(client, feed_world):
    response = await client.get(
        "/feed/explore/all", params={"user_id": "viewer", "posts_per_interest": 1}
    )

    assert response.status_code == 200
    interests = response.json()["interests"]
    assert [p["postId"] for p in interests["python"]] == ["pf"]
    assert [p["postId"] for p in interests["rust"]] == ["q1"]


async def test_metrics_endpoint(client, feed_world):
    await client.get("/feed/for-you", params={"user_id": "viewer"})

    response = await client.get("/metrics/")

    assert response.status_code == 200
    assert "feed_latency_seconds" in response.text
