"""
Feed endpoints — GET /feed/{variant}?user_id=<id>

  /for-you        personalized mix of followed, liked and socially-near content
  /following      the viewer's own posts and followees, engagement-ranked
  /explore        posts tagged with one or more named interests
  /explore/all    the top posts of every active interest, grouped by name

The viewer id is trusted; authentication happens upstream.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from feedrank.clients.quality_client import quality_client
from feedrank.config import settings
from feedrank.database import get_db
from feedrank.feed.service import FeedService, QualityScorer
from feedrank.schemas import ExploreAllInterestsResponse, FeedResponse, SortMode

logger = logging.getLogger(__name__)
router = APIRouter()


def get_quality_scorer() -> QualityScorer:
    return quality_client


def get_feed_service(
    db: AsyncSession = Depends(get_db),
    scorer: QualityScorer = Depends(get_quality_scorer),
) -> FeedService:
    return FeedService(db, scorer=scorer)


@router.get("/for-you", response_model=FeedResponse, response_model_by_alias=True)
async def for_you_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    page: int = Query(1),
    limit: int = Query(settings.feed_page_size),
    service: FeedService = Depends(get_feed_service),
):
    return await service.for_you(user_id, page=page, limit=limit)


@router.get("/following", response_model=FeedResponse, response_model_by_alias=True)
async def following_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    page: int = Query(1),
    limit: int = Query(settings.feed_page_size),
    service: FeedService = Depends(get_feed_service),
):
    return await service.following(user_id, page=page, limit=limit)


@router.get("/explore", response_model=FeedResponse, response_model_by_alias=True)
async def explore_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    interests: list[str] = Query([], description="Interest names; repeat the parameter"),
    page: int = Query(1),
    limit: int = Query(settings.feed_page_size),
    sort_by: SortMode = Query("score"),
    service: FeedService = Depends(get_feed_service),
):
    return await service.explore_by_interests(
        user_id, interests, page=page, limit=limit, sort_by=sort_by
    )


@router.get(
    "/explore/all",
    response_model=ExploreAllInterestsResponse,
    response_model_by_alias=True,
)
async def explore_all_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    posts_per_interest: int = Query(settings.explore_posts_per_interest),
    sort_by: SortMode = Query("latest"),
    service: FeedService = Depends(get_feed_service),
):
    return await service.explore_all_interests(
        user_id, posts_per_interest=posts_per_interest, sort_by=sort_by
    )
