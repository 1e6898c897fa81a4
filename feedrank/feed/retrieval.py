"""
Stage 1 — Candidate Retrieval.

Every feed variant is answered by ONE statement:

  viewer_follows │ viewer_blocks │ viewer_blockers │ viewer_mutes │ liked_authors
  ───────────────┴───────────────┴─────────────────┴──────────────┴──────────────
        per-viewer relation CTEs, shared by every part below

  all_posts   = content rows (ORIGINAL / QUOTE)  UNION ALL  reshare rows
                 ├─ soft-deleted posts and REPLY never enter
                 ├─ author blocked-by / blocking / muted-by viewer → dropped
                 └─ reshares: the resharer is checked the same way

  candidates  = all_posts
                 + author identity & stats (followers, following, posts)
                 + engagement (likes, reshares, replies, quotes)
                 + content features (has_media, hashtag / mention counts)
                 + viewer flags (liked, follows author, reshared)
                 + media / mentions as JSON arrays
                 + resolved quote parent (op_* columns, QUOTE only)

  SELECT candidates.*, <variant score> AS personalization_score
  ORDER BY personalization_score DESC, effective_date DESC
  LIMIT :limit OFFSET :offset

Pagination happens here, so quality re-ranking later only reorders within
the page.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import (
    DateTime,
    Float,
    Select,
    and_,
    case,
    false,
    func,
    literal,
    null,
    or_,
    select,
    true,
    union_all,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, join

from feedrank.feed.candidates import CandidatePost, candidate_from_row
from feedrank.feed.sql import count_of, hours_between, json_array, json_objects_array
from feedrank.models import (
    Block,
    Follow,
    Interest,
    Like,
    Media,
    Mention,
    Mute,
    Post,
    PostHashtag,
    PostKind,
    Repost,
    User,
)

logger = logging.getLogger(__name__)

# REPLY is never surfaced as feed content
FEED_KINDS = (PostKind.ORIGINAL, PostKind.QUOTE)

FOR_YOU_WINDOW = timedelta(days=10)
EXPLORE_WINDOW = timedelta(days=30)

SORT_MODES = ("score", "latest")


@dataclass(frozen=True)
class AffinityWeights:
    """Social-affinity score used by For-You and Explore."""
    following: float
    direct_like: float
    common_like: float
    common_follow: float
    own_content: float
    interest_match: float = 0.0


@dataclass(frozen=True)
class EngagementWeights:
    """Engagement + freshness score used by Following."""
    own_content: float = 1.5
    following: float = 1.2
    likes: float = 0.35
    reshares: float = 0.35
    replies: float = 0.15
    quotes: float = 0.2
    mentions: float = 0.1
    freshness: float = 0.1
    freshness_scale_hours: float = 2.0


FOR_YOU_WEIGHTS = AffinityWeights(
    following=20.0,
    direct_like=15.0,
    common_like=8.0,
    common_follow=5.0,
    own_content=20.0,
)

EXPLORE_WEIGHTS = AffinityWeights(
    following=15.0,
    direct_like=10.0,
    common_like=5.0,
    common_follow=3.0,
    own_content=20.0,
    interest_match=40.0,   # membership is a precondition, so flat
)

FOLLOWING_WEIGHTS = EngagementWeights()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def page_offset(page: int, limit: int) -> int:
    # Pages are 1-based and not validated; SQL rejects a negative OFFSET.
    return max((page - 1) * limit, 0)


def check_sort_mode(sort_by: str) -> None:
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unknown sort mode {sort_by!r}; expected one of {SORT_MODES}")


# ─────────────────────────── Viewer relations ─────────────────────────────

class ViewerGraph:
    """Relation CTEs for one viewer, shared by all parts of a statement."""

    def __init__(self, viewer_id: str) -> None:
        self.viewer_id = viewer_id
        self.follows = (
            select(Follow.followee_id.label("user_id"))
            .where(Follow.follower_id == viewer_id)
            .cte("viewer_follows")
        )
        self.blocked = (
            select(Block.blocked_id.label("user_id"))
            .where(Block.blocker_id == viewer_id)
            .cte("viewer_blocks")
        )
        self.blockers = (
            select(Block.blocker_id.label("user_id"))
            .where(Block.blocked_id == viewer_id)
            .cte("viewer_blockers")
        )
        self.muted = (
            select(Mute.muted_id.label("user_id"))
            .where(Mute.muter_id == viewer_id)
            .cte("viewer_mutes")
        )
        self.liked_authors = (
            select(Post.user_id)
            .distinct()
            .select_from(Like)
            .join(Post, Post.post_id == Like.post_id)
            .where(Like.user_id == viewer_id)
            .cte("liked_authors")
        )

    def followed(self, user_col):
        return user_col.in_(select(self.follows.c.user_id))

    def self_or_followed(self, user_col):
        return or_(user_col == self.viewer_id, self.followed(user_col))

    def visible(self, user_col):
        """Not blocked by the viewer, not blocking the viewer, not muted."""
        return and_(
            user_col.not_in(select(self.blocked.c.user_id)),
            user_col.not_in(select(self.blockers.c.user_id)),
            user_col.not_in(select(self.muted.c.user_id)),
        )


# ─────────────────────────── all_posts parts ──────────────────────────────

def _eligible():
    return and_(Post.is_deleted.is_(False), Post.kind.in_(FEED_KINDS))


def _post_columns():
    return [
        Post.post_id,
        Post.user_id,
        Post.content,
        Post.kind,
        Post.parent_id,
        Post.visibility,
        Post.interest_id,
        Post.created_at,
    ]


def content_rows(graph: ViewerGraph, *criteria) -> Select:
    """Original and quote posts, dated by their creation time."""
    return select(
        *_post_columns(),
        Post.created_at.label("effective_date"),
        false().label("is_reshare"),
        null().label("resharer_id"),
        null().label("resharer_username"),
        null().label("resharer_verified"),
        null().label("resharer_display_name"),
        null().label("resharer_avatar"),
    ).where(_eligible(), graph.visible(Post.user_id), *criteria)


def reshare_rows(graph: ViewerGraph, *criteria) -> Select:
    """Reshare events, dated by the reshare and carrying the resharer's identity."""
    resharer = aliased(User, name="resharer")
    return (
        select(
            *_post_columns(),
            Repost.created_at.label("effective_date"),
            true().label("is_reshare"),
            resharer.user_id.label("resharer_id"),
            resharer.username.label("resharer_username"),
            resharer.is_verified.label("resharer_verified"),
            resharer.display_name.label("resharer_display_name"),
            resharer.avatar_url.label("resharer_avatar"),
        )
        .select_from(Repost)
        .join(Post, Post.post_id == Repost.post_id)
        .join(resharer, resharer.user_id == Repost.user_id)
        .where(
            _eligible(),
            graph.visible(Post.user_id),
            graph.visible(Repost.user_id),
            *criteria,
        )
    )


# ─────────────────────────── Feature enrichment ───────────────────────────

def _media_json(post_id_col, correlate):
    return json_array(
        json_objects_array(url=Media.media_url, type=Media.media_type),
        Media,
        Media.post_id == post_id_col,
        correlate=correlate,
    )


def _mentions_json(post_id_col, correlate):
    mentioned = aliased(User, name="mentioned")
    return json_array(
        json_objects_array(userId=mentioned.user_id, username=mentioned.username),
        join(Mention, mentioned, mentioned.user_id == Mention.user_id),
        Mention.post_id == post_id_col,
        correlate=correlate,
    )


def _viewer_liked(post_id_col, viewer_id, correlate):
    return (
        select(Like.user_id)
        .where(Like.post_id == post_id_col, Like.user_id == viewer_id)
        .correlate(*correlate)
        .exists()
    )


def _viewer_reshared(post_id_col, viewer_id, correlate):
    return (
        select(Repost.user_id)
        .where(Repost.post_id == post_id_col, Repost.user_id == viewer_id)
        .correlate(*correlate)
        .exists()
    )


def _children_count(post_id_col, kind: PostKind, correlate):
    child = aliased(Post, name="child")
    return count_of(
        child,
        child.parent_id == post_id_col,
        child.kind == kind,
        child.is_deleted.is_(False),
        correlate=correlate,
    )


def candidate_features(graph: ViewerGraph, all_posts, **extra_columns) -> Select:
    """Attach every scoring and display feature to the ``all_posts`` rows."""
    ap = all_posts
    viewer_id = graph.viewer_id
    author = aliased(User, name="author")
    parent = aliased(Post, name="parent")
    parent_author = aliased(User, name="parent_author")
    interest = aliased(Interest, name="interest")
    own = (ap,)
    up = (parent,)

    columns = [
        *ap.c,
        # Author identity & stats
        author.username,
        author.is_verified,
        author.display_name.label("author_display_name"),
        author.avatar_url.label("author_avatar"),
        count_of(Follow, Follow.followee_id == ap.c.user_id, correlate=own).label(
            "followers_count"
        ),
        count_of(Follow, Follow.follower_id == ap.c.user_id, correlate=own).label(
            "following_count"
        ),
        count_of(
            Post, Post.user_id == ap.c.user_id, Post.is_deleted.is_(False), correlate=own
        ).label("posts_count"),
        # Engagement
        count_of(Like, Like.post_id == ap.c.post_id, correlate=own).label("like_count"),
        count_of(Repost, Repost.post_id == ap.c.post_id, correlate=own).label(
            "reshare_count"
        ),
        _children_count(ap.c.post_id, PostKind.REPLY, own).label("reply_count"),
        _children_count(ap.c.post_id, PostKind.QUOTE, own).label("quote_count"),
        # Content features
        select(Media.media_id)
        .where(Media.post_id == ap.c.post_id)
        .correlate(ap)
        .exists()
        .label("has_media"),
        count_of(PostHashtag, PostHashtag.post_id == ap.c.post_id, correlate=own).label(
            "hashtag_count"
        ),
        count_of(Mention, Mention.post_id == ap.c.post_id, correlate=own).label(
            "mention_count"
        ),
        # Viewer flags
        _viewer_liked(ap.c.post_id, viewer_id, own).label("liked_by_viewer"),
        graph.followed(ap.c.user_id).label("follows_author"),
        _viewer_reshared(ap.c.post_id, viewer_id, own).label("reshared_by_viewer"),
        _media_json(ap.c.post_id, own).label("media"),
        _mentions_json(ap.c.post_id, own).label("mentions"),
        # Quote parent, resolved in place
        parent.post_id.label("op_post_id"),
        parent.content.label("op_content"),
        parent.created_at.label("op_created_at"),
        count_of(Like, Like.post_id == parent.post_id, correlate=up).label("op_like_count"),
        count_of(Repost, Repost.post_id == parent.post_id, correlate=up).label(
            "op_reshare_count"
        ),
        _children_count(parent.post_id, PostKind.REPLY, up).label("op_reply_count"),
        _viewer_liked(parent.post_id, viewer_id, up).label("op_liked_by_viewer"),
        graph.followed(parent.user_id).label("op_follows_author"),
        _viewer_reshared(parent.post_id, viewer_id, up).label("op_reshared_by_viewer"),
        parent_author.user_id.label("op_user_id"),
        parent_author.username.label("op_username"),
        parent_author.is_verified.label("op_verified"),
        parent_author.display_name.label("op_display_name"),
        parent_author.avatar_url.label("op_avatar"),
        _media_json(parent.post_id, up).label("op_media"),
        _mentions_json(parent.post_id, up).label("op_mentions"),
        interest.name.label("interest_name"),
    ]
    columns.extend(expr.label(name) for name, expr in extra_columns.items())

    from_clause = (
        ap.join(author, author.user_id == ap.c.user_id)
        .outerjoin(
            parent,
            and_(
                parent.post_id == ap.c.parent_id,
                ap.c.kind == PostKind.QUOTE,
                parent.is_deleted.is_(False),
            ),
        )
        .outerjoin(parent_author, parent_author.user_id == parent.user_id)
        .outerjoin(interest, interest.interest_id == ap.c.interest_id)
    )
    return select(*columns).select_from(from_clause)


def affinity_inputs(graph: ViewerGraph, all_posts) -> dict:
    """Extra per-row signals the affinity score is computed from."""
    ap = all_posts
    return {
        "direct_like": ap.c.user_id.in_(select(graph.liked_authors.c.user_id)),
        "common_likes": count_of(
            Like,
            Like.post_id == ap.c.post_id,
            Like.user_id.in_(select(graph.follows.c.user_id)),
            correlate=(ap,),
        ),
        "common_follow": select(Follow.follower_id)
        .where(
            Follow.followee_id == ap.c.user_id,
            Follow.follower_id.in_(select(graph.follows.c.user_id)),
        )
        .correlate(ap)
        .exists(),
    }


# ─────────────────────────── Scores ───────────────────────────────────────

def affinity_score(candidates, viewer_id: str, weights: AffinityWeights):
    c = candidates.c
    score = (
        case((c.user_id == viewer_id, weights.own_content), else_=0.0)
        + case((c.follows_author, weights.following), else_=0.0)
        + case((c.direct_like, weights.direct_like), else_=0.0)
        + c.common_likes * weights.common_like
        + case((c.common_follow, weights.common_follow), else_=0.0)
    )
    if weights.interest_match:
        score = score + weights.interest_match
    return score


def engagement_score(candidates, viewer_id: str, now: datetime, weights: EngagementWeights):
    c = candidates.c
    hours_since = hours_between(literal(now, DateTime), c.effective_date)
    return (
        case((c.user_id == viewer_id, weights.own_content), else_=0.0)
        + literal(weights.following, Float)
        + weights.likes * func.ln(1 + c.like_count, type_=Float)
        + weights.reshares * func.ln(1 + c.reshare_count, type_=Float)
        + weights.replies * func.ln(1 + c.reply_count, type_=Float)
        + weights.quotes * func.ln(1 + c.quote_count, type_=Float)
        + weights.mentions * func.ln(1 + c.mention_count, type_=Float)
        + weights.freshness / (1.0 + hours_since / weights.freshness_scale_hours)
    )


def _ranked_page(candidates, score, order_by: Sequence, page: int, limit: int) -> Select:
    return (
        select(*candidates.c, score)
        .order_by(*order_by)
        .limit(limit)
        .offset(page_offset(page, limit))
    )


# ─────────────────────────── Variant statements ───────────────────────────

def for_you_query(viewer_id: str, page: int, limit: int, now: datetime) -> Select:
    """Anyone's content from the last 10 days, the viewer's own included."""
    graph = ViewerGraph(viewer_id)
    cutoff = now - FOR_YOU_WINDOW
    all_posts = union_all(
        content_rows(graph, Post.created_at > cutoff),
        reshare_rows(graph, Repost.created_at > cutoff),
    ).cte("all_posts")
    candidates = candidate_features(
        graph, all_posts, **affinity_inputs(graph, all_posts)
    ).subquery("candidates")
    score = affinity_score(candidates, viewer_id, FOR_YOU_WEIGHTS).label(
        "personalization_score"
    )
    return _ranked_page(
        candidates, score, [score.desc(), candidates.c.effective_date.desc()], page, limit
    )


def following_query(viewer_id: str, page: int, limit: int, now: datetime) -> Select:
    """Content by followees (and the viewer); reshares need both people followed."""
    graph = ViewerGraph(viewer_id)
    all_posts = union_all(
        content_rows(graph, graph.self_or_followed(Post.user_id)),
        reshare_rows(
            graph,
            graph.self_or_followed(Repost.user_id),
            graph.self_or_followed(Post.user_id),
        ),
    ).cte("all_posts")
    candidates = candidate_features(graph, all_posts).subquery("candidates")
    score = engagement_score(candidates, viewer_id, now, FOLLOWING_WEIGHTS).label(
        "personalization_score"
    )
    return _ranked_page(
        candidates, score, [score.desc(), candidates.c.effective_date.desc()], page, limit
    )


def _explore_candidates(graph: ViewerGraph, interest_ids, now: datetime):
    cutoff = now - EXPLORE_WINDOW
    all_posts = union_all(
        content_rows(graph, Post.interest_id.in_(interest_ids), Post.created_at > cutoff),
        reshare_rows(graph, Post.interest_id.in_(interest_ids), Repost.created_at > cutoff),
    ).cte("all_posts")
    return candidate_features(
        graph, all_posts, **affinity_inputs(graph, all_posts)
    ).subquery("candidates")


def explore_by_interests_query(
    viewer_id: str,
    interest_names: Sequence[str],
    page: int,
    limit: int,
    now: datetime,
    sort_by: str = "score",
) -> Select:
    """Content tagged with one of ``interest_names`` from the last 30 days."""
    check_sort_mode(sort_by)
    graph = ViewerGraph(viewer_id)
    interest_ids = select(Interest.interest_id).where(Interest.name.in_(list(interest_names)))
    candidates = _explore_candidates(graph, interest_ids, now)
    score = affinity_score(candidates, viewer_id, EXPLORE_WEIGHTS).label(
        "personalization_score"
    )
    if sort_by == "latest":
        order_by = [candidates.c.effective_date.desc()]
    else:
        order_by = [score.desc(), candidates.c.effective_date.desc()]
    return _ranked_page(candidates, score, order_by, page, limit)


def explore_all_interests_query(
    viewer_id: str,
    posts_per_interest: int,
    now: datetime,
    sort_by: str = "latest",
) -> Select:
    """Top ``posts_per_interest`` candidates of every active interest."""
    check_sort_mode(sort_by)
    graph = ViewerGraph(viewer_id)
    interest_ids = select(Interest.interest_id).where(Interest.is_active.is_(True))
    candidates = _explore_candidates(graph, interest_ids, now)
    score = affinity_score(candidates, viewer_id, EXPLORE_WEIGHTS)
    if sort_by == "latest":
        window_order = [candidates.c.effective_date.desc()]
    else:
        window_order = [score.desc(), candidates.c.effective_date.desc()]
    ranked = select(
        *candidates.c,
        score.label("personalization_score"),
        func.row_number()
        .over(partition_by=candidates.c.interest_id, order_by=window_order)
        .label("row_num"),
    ).subquery("ranked")
    return (
        select(ranked)
        .where(ranked.c.row_num <= posts_per_interest)
        .order_by(ranked.c.interest_name, ranked.c.row_num)
    )


# ─────────────────────────── Retriever ────────────────────────────────────

class CandidateRetriever:
    """Runs the variant statements on a read-only session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def for_you(
        self, viewer_id: str, page: int = 1, limit: int = 50, now: Optional[datetime] = None
    ) -> list[CandidatePost]:
        return await self._fetch(for_you_query(viewer_id, page, limit, now or utcnow()))

    async def following(
        self, viewer_id: str, page: int = 1, limit: int = 50, now: Optional[datetime] = None
    ) -> list[CandidatePost]:
        return await self._fetch(following_query(viewer_id, page, limit, now or utcnow()))

    async def explore_by_interests(
        self,
        viewer_id: str,
        interest_names: Sequence[str],
        page: int = 1,
        limit: int = 50,
        sort_by: str = "score",
        now: Optional[datetime] = None,
    ) -> list[CandidatePost]:
        if not interest_names:
            return []
        stmt = explore_by_interests_query(
            viewer_id, interest_names, page, limit, now or utcnow(), sort_by
        )
        return await self._fetch(stmt)

    async def explore_all_interests(
        self,
        viewer_id: str,
        posts_per_interest: int = 5,
        sort_by: str = "latest",
        now: Optional[datetime] = None,
    ) -> list[CandidatePost]:
        stmt = explore_all_interests_query(
            viewer_id, posts_per_interest, now or utcnow(), sort_by
        )
        return await self._fetch(stmt)

    async def _fetch(self, stmt: Select) -> list[CandidatePost]:
        result = await self.session.execute(stmt)
        candidates = [candidate_from_row(row) for row in result.mappings().all()]
        logger.debug("Retrieved %d candidates", len(candidates))
        return candidates
