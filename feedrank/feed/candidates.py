"""
Per-request candidate records.

A ``CandidatePost`` is built once from a retrieval row and lives only for
the request: it carries everything the ranker and the shaper need, so no
second lookup happens after retrieval.
"""
import json
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping, Optional

from feedrank.models import PostKind
from feedrank.schemas import QualityAuthorFeatures, QualityFeatures


@dataclass
class UserSnapshot:
    user_id: str
    username: str
    verified: bool
    display_name: Optional[str] = None
    avatar: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.username


@dataclass
class AuthorStats:
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0


@dataclass
class OriginalPostSnapshot:
    """Resolved parent of a QUOTE, with viewer flags computed on the parent."""
    post_id: str
    content: Optional[str]
    created_at: datetime
    author: UserSnapshot
    like_count: int = 0
    reshare_count: int = 0
    reply_count: int = 0
    liked_by_viewer: bool = False
    follows_author: bool = False
    reshared_by_viewer: bool = False
    media: list[dict] = field(default_factory=list)
    mentions: list[dict] = field(default_factory=list)


@dataclass
class CandidatePost:
    post_id: str
    kind: PostKind
    parent_id: Optional[str]
    content: Optional[str]
    visibility: str
    interest_id: Optional[str]
    created_at: datetime
    # Reshare time for reshares, creation time otherwise
    effective_date: datetime
    is_reshare: bool
    author: UserSnapshot
    author_stats: AuthorStats
    personalization_score: float

    resharer: Optional[UserSnapshot] = None

    # Content features
    has_media: bool = False
    hashtag_count: int = 0
    mention_count: int = 0

    # Engagement
    like_count: int = 0
    reshare_count: int = 0
    reply_count: int = 0
    quote_count: int = 0

    # Viewer-relative flags
    liked_by_viewer: bool = False
    follows_author: bool = False
    reshared_by_viewer: bool = False

    media: list[dict] = field(default_factory=list)
    mentions: list[dict] = field(default_factory=list)
    original_post: Optional[OriginalPostSnapshot] = None
    interest_name: Optional[str] = None

    def quality_features(self) -> QualityFeatures:
        return QualityFeatures(
            post_id=self.post_id,
            content_length=len(self.content or ""),
            has_media=self.has_media,
            hashtag_count=self.hashtag_count,
            mention_count=self.mention_count,
            author=QualityAuthorFeatures(
                author_id=self.author.user_id,
                author_followers_count=self.author_stats.followers_count,
                author_following_count=self.author_stats.following_count,
                author_tweet_count=self.author_stats.posts_count,
                author_is_verified=self.author.verified,
            ),
        )


@dataclass
class ScoredCandidate(CandidatePost):
    quality_score: float = 0.0
    final_score: float = 0.0

    @classmethod
    def from_candidate(
        cls, candidate: CandidatePost, quality_score: float, final_score: float
    ) -> "ScoredCandidate":
        values = {f.name: getattr(candidate, f.name) for f in fields(CandidatePost)}
        return cls(**values, quality_score=quality_score, final_score=final_score)


# ─────────────────────────── Row mapping ──────────────────────────────────

def _json_list(value: Any) -> list[dict]:
    # JSON aggregates come back as text on MySQL/SQLite, decoded on some drivers
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        value = json.loads(value)
    return list(value)


def _int(value: Any) -> int:
    return int(value or 0)


def candidate_from_row(row: Mapping[str, Any]) -> CandidatePost:
    """Build a CandidatePost from one retrieval row (``Row._mapping``)."""
    resharer = None
    if row["is_reshare"] and row["resharer_id"] is not None:
        resharer = UserSnapshot(
            user_id=row["resharer_id"],
            username=row["resharer_username"],
            verified=bool(row["resharer_verified"]),
            display_name=row["resharer_display_name"],
            avatar=row["resharer_avatar"],
        )

    kind = PostKind(row["kind"])
    original_post = None
    if kind is PostKind.QUOTE and row["op_post_id"] is not None:
        original_post = OriginalPostSnapshot(
            post_id=row["op_post_id"],
            content=row["op_content"],
            created_at=row["op_created_at"],
            author=UserSnapshot(
                user_id=row["op_user_id"],
                username=row["op_username"],
                verified=bool(row["op_verified"]),
                display_name=row["op_display_name"],
                avatar=row["op_avatar"],
            ),
            like_count=_int(row["op_like_count"]),
            reshare_count=_int(row["op_reshare_count"]),
            reply_count=_int(row["op_reply_count"]),
            liked_by_viewer=bool(row["op_liked_by_viewer"]),
            follows_author=bool(row["op_follows_author"]),
            reshared_by_viewer=bool(row["op_reshared_by_viewer"]),
            media=_json_list(row["op_media"]),
            mentions=_json_list(row["op_mentions"]),
        )

    return CandidatePost(
        post_id=row["post_id"],
        kind=kind,
        parent_id=row["parent_id"],
        content=row["content"],
        visibility=row["visibility"],
        interest_id=row["interest_id"],
        created_at=row["created_at"],
        effective_date=row["effective_date"],
        is_reshare=bool(row["is_reshare"]),
        author=UserSnapshot(
            user_id=row["user_id"],
            username=row["username"],
            verified=bool(row["is_verified"]),
            display_name=row["author_display_name"],
            avatar=row["author_avatar"],
        ),
        author_stats=AuthorStats(
            followers_count=_int(row["followers_count"]),
            following_count=_int(row["following_count"]),
            posts_count=_int(row["posts_count"]),
        ),
        personalization_score=float(row["personalization_score"] or 0.0),
        resharer=resharer,
        has_media=bool(row["has_media"]),
        hashtag_count=_int(row["hashtag_count"]),
        mention_count=_int(row["mention_count"]),
        like_count=_int(row["like_count"]),
        reshare_count=_int(row["reshare_count"]),
        reply_count=_int(row["reply_count"]),
        quote_count=_int(row["quote_count"]),
        liked_by_viewer=bool(row["liked_by_viewer"]),
        follows_author=bool(row["follows_author"]),
        reshared_by_viewer=bool(row["reshared_by_viewer"]),
        media=_json_list(row["media"]),
        mentions=_json_list(row["mentions"]),
        original_post=original_post,
        interest_name=row.get("interest_name"),
    )
