"""
Feed orchestration — one entry point per feed variant.

  Stage 1 │ Candidate Retrieval   one SQL statement, page-bounded, pre-sorted
  Stage 2 │ Quality Scoring       one batched call to the quality model
  Stage 3 │ Hybrid Ranking        0.3 × quality + 0.7 × personalization
  Stage 4 │ Response Shaping      repost / quote / original cards

An empty page short-circuits after Stage 1. The Explore variants skip
Stages 2–3 when sorted by ``latest``.

The quality client degrades to an empty mapping on its own transport
failures; an exception raised by the scorer itself is not caught here and
fails the request.
"""
import asyncio
import logging
from typing import Optional, Protocol, Sequence

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from feedrank.clients.quality_client import quality_client
from feedrank.config import settings
from feedrank.feed.candidates import CandidatePost, ScoredCandidate
from feedrank.feed.ranker import HybridRanker
from feedrank.feed.retrieval import CandidateRetriever, check_sort_mode
from feedrank.feed.shaper import shape_all
from feedrank.schemas import ExploreAllInterestsResponse, FeedResponse, QualityFeatures
from feedrank.telemetry import FEED_CANDIDATES_TOTAL, FEED_EMPTY_TOTAL, FEED_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class QualityScorer(Protocol):
    async def get_quality_scores(
        self, features: Sequence[QualityFeatures]
    ) -> dict[str, float]: ...


class FeedService:
    def __init__(
        self,
        session: AsyncSession,
        scorer: Optional[QualityScorer] = None,
        ranker: Optional[HybridRanker] = None,
        retriever: Optional[CandidateRetriever] = None,
    ) -> None:
        self.retriever = retriever or CandidateRetriever(session)
        self.scorer = scorer if scorer is not None else quality_client
        self.ranker = ranker or HybridRanker.from_settings()

    # ── Variants ──────────────────────────────────────────────────────────

    async def for_you(
        self, viewer_id: str, page: int = 1, limit: Optional[int] = None
    ) -> FeedResponse:
        limit = limit if limit is not None else settings.feed_page_size
        with FEED_LATENCY.labels("for_you").time(), tracer.start_as_current_span(
            "feed.for_you"
        ) as span:
            span.set_attribute("user.id", viewer_id)
            with tracer.start_as_current_span("stage1_retrieval"):
                candidates = await self.retriever.for_you(viewer_id, page, limit)
            return await self._rank_and_shape("for_you", candidates)

    async def following(
        self, viewer_id: str, page: int = 1, limit: Optional[int] = None
    ) -> FeedResponse:
        limit = limit if limit is not None else settings.feed_page_size
        with FEED_LATENCY.labels("following").time(), tracer.start_as_current_span(
            "feed.following"
        ) as span:
            span.set_attribute("user.id", viewer_id)
            with tracer.start_as_current_span("stage1_retrieval"):
                candidates = await self.retriever.following(viewer_id, page, limit)
            return await self._rank_and_shape("following", candidates)

    async def explore_by_interests(
        self,
        viewer_id: str,
        interest_names: Sequence[str],
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "score",
    ) -> FeedResponse:
        check_sort_mode(sort_by)
        limit = limit if limit is not None else settings.feed_page_size
        with FEED_LATENCY.labels("explore").time(), tracer.start_as_current_span(
            "feed.explore_by_interests"
        ) as span:
            span.set_attribute("user.id", viewer_id)
            span.set_attribute("feed.interests", list(interest_names))
            span.set_attribute("feed.sort_by", sort_by)
            with tracer.start_as_current_span("stage1_retrieval"):
                candidates = await self.retriever.explore_by_interests(
                    viewer_id, interest_names, page, limit, sort_by
                )
            return await self._rank_and_shape("explore", candidates, sort_by)

    async def explore_all_interests(
        self,
        viewer_id: str,
        posts_per_interest: Optional[int] = None,
        sort_by: str = "latest",
    ) -> ExploreAllInterestsResponse:
        """Top posts of every active interest, grouped by interest name."""
        check_sort_mode(sort_by)
        if posts_per_interest is None:
            posts_per_interest = settings.explore_posts_per_interest
        with FEED_LATENCY.labels("explore_all").time(), tracer.start_as_current_span(
            "feed.explore_all_interests"
        ) as span:
            span.set_attribute("user.id", viewer_id)
            span.set_attribute("feed.sort_by", sort_by)
            with tracer.start_as_current_span("stage1_retrieval"):
                candidates = await self.retriever.explore_all_interests(
                    viewer_id, posts_per_interest, sort_by
                )
            FEED_CANDIDATES_TOTAL.labels("explore_all").inc(len(candidates))

            groups: dict[str, list[CandidatePost]] = {}
            for candidate in candidates:
                if candidate.interest_name:
                    groups.setdefault(candidate.interest_name, []).append(candidate)

            if sort_by == "latest":
                return ExploreAllInterestsResponse(
                    interests={
                        name: shape_all(group[:posts_per_interest])
                        for name, group in groups.items()
                    }
                )

            # Each interest is scored and ranked on its own, concurrently
            names = list(groups)
            ranked_groups = await asyncio.gather(*(self._rank(groups[n]) for n in names))
            return ExploreAllInterestsResponse(
                interests={
                    name: shape_all(ranked[:posts_per_interest])
                    for name, ranked in zip(names, ranked_groups)
                }
            )

    # ── Shared stages ─────────────────────────────────────────────────────

    async def _rank_and_shape(
        self, variant: str, candidates: list[CandidatePost], sort_by: str = "score"
    ) -> FeedResponse:
        FEED_CANDIDATES_TOTAL.labels(variant).inc(len(candidates))
        if not candidates:
            logger.info("Empty %s page, nothing to rank", variant)
            FEED_EMPTY_TOTAL.labels(variant).inc()
            return FeedResponse(posts=[])

        if sort_by == "latest":
            # Retrieval already ordered by effective date
            ranked = candidates
        else:
            ranked = await self._rank(candidates)

        with tracer.start_as_current_span("stage4_shape"):
            return FeedResponse(posts=shape_all(ranked))

    async def _rank(self, candidates: list[CandidatePost]) -> list[ScoredCandidate]:
        with tracer.start_as_current_span("stage2_quality_scoring") as span:
            span.set_attribute("batch.size", len(candidates))
            quality_scores = await self.scorer.get_quality_scores(
                [c.quality_features() for c in candidates]
            )
            span.set_attribute("quality.scored", len(quality_scores))
        with tracer.start_as_current_span("stage3_hybrid_rank"):
            return self.ranker.rank(candidates, quality_scores)
