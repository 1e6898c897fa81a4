"""
Pydantic request / response schemas.
Kept separate from ORM models to avoid coupling transport to storage.

Outward JSON uses camelCase (``postId``, ``isLikedByMe`` …) through an alias
generator; Python code uses the snake_case attribute names.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

SortMode = Literal["score", "latest"]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ──────────────────────────── Feed ────────────────────────────────────────

class MediaItem(CamelModel):
    url: str
    type: str


class MentionItem(CamelModel):
    user_id: str
    username: str


class OriginalPostData(CamelModel):
    """The post a reshare or quote card points at."""
    user_id: str
    username: str
    verified: bool
    name: str
    avatar: Optional[str] = None

    post_id: str
    date: datetime
    likes_count: int
    retweets_count: int
    comments_count: int

    is_liked_by_me: bool
    is_followed_by_me: bool
    is_reposted_by_me: bool

    text: str
    media: list[MediaItem] = Field(default_factory=list)
    mentions: list[MentionItem] = Field(default_factory=list)


class FeedItem(CamelModel):
    """A ranked, UI-ready feed card."""
    # Resharer for simple reshares, author otherwise
    user_id: str
    username: str
    verified: bool
    name: str
    avatar: Optional[str] = None

    post_id: str
    date: datetime
    likes_count: int
    retweets_count: int
    comments_count: int

    is_liked_by_me: bool
    is_followed_by_me: bool
    is_reposted_by_me: bool

    # Empty for simple reshares
    text: str
    media: list[MediaItem] = Field(default_factory=list)
    mentions: list[MentionItem] = Field(default_factory=list)

    is_repost: bool
    is_quote: bool
    original_post_data: Optional[OriginalPostData] = None

    # Ranking signals exposed for debugging / analytics
    personalization_score: float
    quality_score: Optional[float] = None
    final_score: Optional[float] = None


class FeedResponse(BaseModel):
    posts: list[FeedItem]


class ExploreAllInterestsResponse(BaseModel):
    # interest name → top posts of that interest
    interests: dict[str, list[FeedItem]]


# ──────────────────────────── Quality model ───────────────────────────────

class QualityAuthorFeatures(CamelModel):
    author_id: str
    author_followers_count: int
    author_following_count: int
    author_tweet_count: int
    author_is_verified: bool


class QualityFeatures(CamelModel):
    """One post's feature vector sent to the quality model."""
    post_id: str
    content_length: int
    has_media: bool
    hashtag_count: int
    mention_count: int
    author: QualityAuthorFeatures


class QualityScore(CamelModel):
    post_id: str
    quality_score: float


class QualityPredictionResponse(CamelModel):
    ranked_posts: list[QualityScore]
