"""Tests for hybrid ranking."""

from datetime import datetime

import pytest

from feedrank.feed.candidates import AuthorStats, CandidatePost, ScoredCandidate, UserSnapshot
from feedrank.feed.ranker import HybridRanker
from feedrank.models import PostKind


def make_candidate(post_id: str, personalization: float) -> CandidatePost:
    created = datetime(2026, 10, 1, 12, 0, 0)
    return CandidatePost(
        post_id=post_id,
        kind=PostKind.ORIGINAL,
        parent_id=None,
        content="text",
        visibility="PUBLIC",
        interest_id=None,
        created_at=created,
        effective_date=created,
        is_reshare=False,
        author=UserSnapshot(user_id="u1", username="u1", verified=False),
        author_stats=AuthorStats(),
        personalization_score=personalization,
    )


def test_final_score_blends_quality_and_personalization():
    ranker = HybridRanker()
    a = make_candidate("A", 30.0)
    b = make_candidate("B", 20.0)

    ranked = ranker.rank([b, a], {"A": 0.7, "B": 0.9})

    assert [c.post_id for c in ranked] == ["A", "B"]
    assert ranked[0].final_score == pytest.approx(21.21)
    assert ranked[1].final_score == pytest.approx(14.27)
    assert all(isinstance(c, ScoredCandidate) for c in ranked)


def test_missing_quality_defaults_to_zero():
    ranked = HybridRanker().rank([make_candidate("A", 10.0)], {})

    assert ranked[0].quality_score == 0.0
    assert ranked[0].final_score == pytest.approx(7.0)


def test_quality_can_overtake_personalization():
    ranked = HybridRanker().rank(
        [make_candidate("A", 20.0), make_candidate("B", 0.0)],
        {"B": 100.0},
    )

    assert [c.post_id for c in ranked] == ["B", "A"]


def test_ties_keep_retrieval_order():
    candidates = [make_candidate(pid, 5.0) for pid in ("first", "second", "third")]

    ranked = HybridRanker().rank(candidates, {})

    assert [c.post_id for c in ranked] == ["first", "second", "third"]


def test_scored_candidate_keeps_candidate_fields():
    candidate = make_candidate("A", 3.0)
    candidate.like_count = 4

    scored = HybridRanker(quality_weight=0.5, personalization_weight=0.5).rank(
        [candidate], {"A": 1.0}
    )[0]

    assert scored.like_count == 4
    assert scored.author.username == "u1"
    assert scored.final_score == pytest.approx(2.0)


def test_from_settings_uses_configured_weights():
    ranker = HybridRanker.from_settings()

    assert ranker.quality_weight == pytest.approx(0.3)
    assert ranker.personalization_weight == pytest.approx(0.7)
