"""Tests for feed card shaping."""

from datetime import datetime, timedelta

from feedrank.feed.candidates import (
    AuthorStats,
    CandidatePost,
    OriginalPostSnapshot,
    UserSnapshot,
)
from feedrank.feed.ranker import HybridRanker
from feedrank.feed.shaper import is_quote, is_simple_reshare, shape
from feedrank.models import PostKind

CREATED = datetime(2026, 10, 1, 12, 0, 0)
RESHARED = CREATED + timedelta(hours=3)

AUTHOR = UserSnapshot(user_id="author", username="author", verified=True, display_name="The Author")
RESHARER = UserSnapshot(user_id="resharer", username="resharer", verified=False)


def make_candidate(**overrides) -> CandidatePost:
    values = dict(
        post_id="p1",
        kind=PostKind.ORIGINAL,
        parent_id=None,
        content="original thoughts",
        visibility="PUBLIC",
        interest_id=None,
        created_at=CREATED,
        effective_date=CREATED,
        is_reshare=False,
        author=AUTHOR,
        author_stats=AuthorStats(),
        personalization_score=12.0,
        like_count=3,
        reshare_count=2,
        reply_count=1,
        media=[{"url": "https://cdn.example.com/a.png", "type": "IMAGE"}],
        mentions=[{"userId": "friend", "username": "friend"}],
    )
    values.update(overrides)
    return CandidatePost(**values)


def parent_snapshot() -> OriginalPostSnapshot:
    return OriginalPostSnapshot(
        post_id="parent",
        content="the quoted post",
        created_at=CREATED - timedelta(days=1),
        author=UserSnapshot(user_id="someone", username="someone", verified=False),
        like_count=9,
        liked_by_viewer=True,
        media=[{"url": "https://cdn.example.com/p.png", "type": "IMAGE"}],
    )


def test_original_post_card():
    item = shape(make_candidate())

    assert item.user_id == "author"
    assert item.name == "The Author"
    assert item.text == "original thoughts"
    assert item.date == CREATED
    assert item.is_repost is False
    assert item.is_quote is False
    assert item.original_post_data is None
    assert item.personalization_score == 12.0
    assert item.quality_score is None
    assert item.final_score is None


def test_simple_reshare_card():
    candidate = make_candidate(is_reshare=True, resharer=RESHARER, effective_date=RESHARED)

    item = shape(candidate)

    assert is_simple_reshare(candidate)
    assert item.is_repost is True
    assert item.user_id == "resharer"
    assert item.name == "resharer"
    assert item.date == RESHARED
    assert item.text == ""
    assert item.media == []
    assert [m.user_id for m in item.mentions] == ["friend"]

    original = item.original_post_data
    assert original is not None
    assert original.post_id == "p1"
    assert original.user_id == "author"
    assert original.text == "original thoughts"
    assert original.date == CREATED
    assert original.likes_count == 3
    assert original.media[0].url == "https://cdn.example.com/a.png"
    assert original.mentions[0].user_id == "friend"


def test_quote_card_embeds_parent():
    candidate = make_candidate(
        post_id="q1",
        kind=PostKind.QUOTE,
        parent_id="parent",
        content="my take",
        original_post=parent_snapshot(),
    )

    item = shape(candidate)

    assert is_quote(candidate)
    assert item.is_quote is True
    assert item.is_repost is False
    assert item.user_id == "author"
    assert item.text == "my take"
    assert item.original_post_data.post_id == "parent"
    assert item.original_post_data.user_id == "someone"
    assert item.original_post_data.text == "the quoted post"
    assert item.original_post_data.likes_count == 9
    assert item.original_post_data.is_liked_by_me is True


def test_reshared_quote_keeps_author_on_top():
    candidate = make_candidate(
        post_id="q1",
        kind=PostKind.QUOTE,
        parent_id="parent",
        content="my take",
        is_reshare=True,
        resharer=RESHARER,
        effective_date=RESHARED,
        original_post=parent_snapshot(),
    )

    item = shape(candidate)

    assert not is_simple_reshare(candidate)
    assert item.is_repost is False
    assert item.is_quote is True
    assert item.user_id == "author"
    assert item.date == CREATED
    assert item.text == "my take"
    assert item.original_post_data.post_id == "parent"


def test_quote_of_deleted_post_has_no_embed():
    candidate = make_candidate(kind=PostKind.QUOTE, parent_id="gone", original_post=None)

    item = shape(candidate)

    assert item.is_quote is True
    assert item.original_post_data is None


def test_scores_are_carried_from_ranking():
    scored = HybridRanker().rank([make_candidate()], {"p1": 1.0})[0]

    item = shape(scored)

    assert item.quality_score == 1.0
    assert item.final_score == scored.final_score


def test_json_uses_camel_case():
    item = shape(make_candidate(is_reshare=True, resharer=RESHARER))

    body = item.model_dump(mode="json", by_alias=True)

    assert body["postId"] == "p1"
    assert body["isRepost"] is True
    assert body["originalPostData"]["retweetsCount"] == 2
    assert body["originalPostData"]["mentions"][0]["userId"] == "friend"
