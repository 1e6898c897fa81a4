"""Tests for feed orchestration."""

import pytest

from feedrank.feed.service import FeedService


@pytest.fixture
async def small_world(world):
    for name in ("viewer", "friend", "stranger"):
        world.user(name)
    world.interest("python")
    world.interest("rust")
    world.follow("viewer", "friend")
    world.post("pf", "friend", hours_ago=2, interest="python")
    world.post("ps", "stranger", hours_ago=1, interest="python")
    world.post("rs", "stranger", hours_ago=3, interest="rust")
    world.repost("friend", "ps", hours_ago=0.5)
    await world.commit()
    return world


async def test_empty_feed_skips_scoring(session, world, scorer):
    world.user("viewer")
    await world.commit()

    response = await FeedService(session, scorer=scorer).for_you("viewer")

    assert response.posts == []
    assert scorer.calls == []


async def test_for_you_scores_one_batch_and_reranks(session, small_world, scorer):
    scorer.scores = {"ps": 100.0}

    response = await FeedService(session, scorer=scorer).for_you("viewer")

    assert len(scorer.calls) == 1
    assert sorted(scorer.calls[0]) == ["pf", "ps", "ps", "rs"]
    first = response.posts[0]
    assert first.post_id == "ps"
    assert first.quality_score == 100.0
    assert first.final_score == pytest.approx(100.0 * 0.3 + first.personalization_score * 0.7)
    assert all(p.quality_score is not None for p in response.posts)


async def test_reshare_is_shaped_as_repost(session, small_world, scorer):
    response = await FeedService(session, scorer=scorer).for_you("viewer")

    repost = next(p for p in response.posts if p.is_repost)
    assert repost.user_id == "friend"
    assert repost.text == ""
    assert repost.original_post_data.post_id == "ps"
    assert repost.original_post_data.user_id == "stranger"


async def test_following_only_followed_content(session, small_world, scorer):
    response = await FeedService(session, scorer=scorer).following("viewer")

    assert [p.post_id for p in response.posts] == ["pf"]
    assert len(scorer.calls) == 1


async def test_explore_latest_skips_scoring(session, small_world, scorer):
    response = await FeedService(session, scorer=scorer).explore_by_interests(
        "viewer", ["python"], sort_by="latest"
    )

    assert scorer.calls == []
    assert [p.post_id for p in response.posts] == ["ps", "ps", "pf"]
    assert [p.is_repost for p in response.posts] == [True, False, False]
    assert all(p.quality_score is None and p.final_score is None for p in response.posts)


async def test_explore_without_interests_is_empty(session, small_world, scorer):
    response = await FeedService(session, scorer=scorer).explore_by_interests("viewer", [])

    assert response.posts == []
    assert scorer.calls == []


async def test_unknown_sort_mode_is_rejected(session, small_world, scorer):
    service = FeedService(session, scorer=scorer)

    with pytest.raises(ValueError):
        await service.explore_by_interests("viewer", ["python"], sort_by="random")
    with pytest.raises(ValueError):
        await service.explore_all_interests("viewer", sort_by="random")


async def test_scorer_failure_propagates(session, small_world, scorer):
    scorer.error = RuntimeError("scorer exploded")

    with pytest.raises(RuntimeError, match="scorer exploded"):
        await FeedService(session, scorer=scorer).for_you("viewer")


async def test_explore_all_latest_groups_by_interest(session, small_world, scorer):
    response = await FeedService(session, scorer=scorer).explore_all_interests(
        "viewer", posts_per_interest=2
    )

    assert scorer.calls == []
    assert set(response.interests) == {"python", "rust"}
    assert [p.post_id for p in response.interests["python"]] == ["ps", "ps"]
    assert [p.post_id for p in response.interests["rust"]] == ["rs"]


async def test_explore_all_score_mode_scores_each_interest(session, small_world, scorer):
    scorer.scores = {"pf": 50.0}

    response = await FeedService(session, scorer=scorer).explore_all_interests(
        "viewer", posts_per_interest=5, sort_by="score"
    )

    assert len(scorer.calls) == 2
    assert sorted(len(batch) for batch in scorer.calls) == [1, 3]
    assert response.interests["python"][0].post_id == "pf"
    assert response.interests["python"][0].final_score == pytest.approx(50.0 * 0.3 + 55.0 * 0.7)
