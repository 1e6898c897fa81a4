"""
Stage 4 — Response shaping.

Turns (scored or unscored) candidates into FeedItem cards:

  kind / flags             top-level identity   top-level text+media   originalPostData
  ───────────────────────  ───────────────────  ─────────────────────  ─────────────────────
  original                 author               own                    —
  simple reshare           resharer             empty (mentions kept)  the post itself
  quote (reshared or not)  author               own commentary         the quoted parent
"""
from typing import Optional, Union

from feedrank.feed.candidates import (
    CandidatePost,
    OriginalPostSnapshot,
    ScoredCandidate,
    UserSnapshot,
)
from feedrank.models import PostKind
from feedrank.schemas import FeedItem, MediaItem, MentionItem, OriginalPostData


def _media(items: list[dict]) -> list[MediaItem]:
    return [MediaItem.model_validate(m) for m in items]


def _mentions(items: list[dict]) -> list[MentionItem]:
    return [MentionItem.model_validate(m) for m in items]


def is_quote(candidate: CandidatePost) -> bool:
    return candidate.kind is PostKind.QUOTE and candidate.parent_id is not None


def is_simple_reshare(candidate: CandidatePost) -> bool:
    return candidate.is_reshare and not is_quote(candidate)


def _own_post_data(candidate: CandidatePost) -> OriginalPostData:
    author = candidate.author
    return OriginalPostData(
        user_id=author.user_id,
        username=author.username,
        verified=author.verified,
        name=author.name,
        avatar=author.avatar,
        post_id=candidate.post_id,
        date=candidate.created_at,
        likes_count=candidate.like_count,
        retweets_count=candidate.reshare_count,
        comments_count=candidate.reply_count,
        is_liked_by_me=candidate.liked_by_viewer,
        is_followed_by_me=candidate.follows_author,
        is_reposted_by_me=candidate.reshared_by_viewer,
        text=candidate.content or "",
        media=_media(candidate.media),
        mentions=_mentions(candidate.mentions),
    )


def _quoted_post_data(parent: OriginalPostSnapshot) -> OriginalPostData:
    author = parent.author
    return OriginalPostData(
        user_id=author.user_id,
        username=author.username,
        verified=author.verified,
        name=author.name,
        avatar=author.avatar,
        post_id=parent.post_id,
        date=parent.created_at,
        likes_count=parent.like_count,
        retweets_count=parent.reshare_count,
        comments_count=parent.reply_count,
        is_liked_by_me=parent.liked_by_viewer,
        is_followed_by_me=parent.follows_author,
        is_reposted_by_me=parent.reshared_by_viewer,
        text=parent.content or "",
        media=_media(parent.media),
        mentions=_mentions(parent.mentions),
    )


def _original_post_data(candidate: CandidatePost) -> Optional[OriginalPostData]:
    if is_quote(candidate):
        # A deleted parent resolves to no snapshot; the card then has no embed.
        if candidate.original_post is None:
            return None
        return _quoted_post_data(candidate.original_post)
    if is_simple_reshare(candidate):
        return _own_post_data(candidate)
    return None


def shape(candidate: Union[CandidatePost, ScoredCandidate]) -> FeedItem:
    simple_reshare = is_simple_reshare(candidate)

    top: UserSnapshot = candidate.author
    if simple_reshare and candidate.resharer is not None:
        top = candidate.resharer

    quality_score = final_score = None
    if isinstance(candidate, ScoredCandidate):
        quality_score = candidate.quality_score
        final_score = candidate.final_score

    return FeedItem(
        user_id=top.user_id,
        username=top.username,
        verified=top.verified,
        name=top.name,
        avatar=top.avatar,
        post_id=candidate.post_id,
        date=candidate.effective_date if simple_reshare else candidate.created_at,
        likes_count=candidate.like_count,
        retweets_count=candidate.reshare_count,
        comments_count=candidate.reply_count,
        is_liked_by_me=candidate.liked_by_viewer,
        is_followed_by_me=candidate.follows_author,
        is_reposted_by_me=candidate.reshared_by_viewer,
        text="" if simple_reshare else (candidate.content or ""),
        media=[] if simple_reshare else _media(candidate.media),
        mentions=_mentions(candidate.mentions),
        is_repost=simple_reshare,
        is_quote=is_quote(candidate),
        original_post_data=_original_post_data(candidate),
        personalization_score=candidate.personalization_score,
        quality_score=quality_score,
        final_score=final_score,
    )


def shape_all(candidates) -> list[FeedItem]:
    return [shape(c) for c in candidates]
