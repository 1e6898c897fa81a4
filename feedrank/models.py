"""
SQLAlchemy ORM models for the content store.

Tables:
  users          — profile identity (name, avatar, verified badge)
  follows        — social graph edges (follower → followee)
  blocks         — blocker → blocked (excluded in both directions)
  mutes          — muter → muted (excluded one way)
  posts          — ORIGINAL / REPLY / QUOTE content, soft-deleted only
  reposts        — reshare events (post × resharer)
  likes          — user × post engagement
  interests      — topic catalogue; a post carries at most one
  user_interests — user ↔ interest
  media          — attachments (bytes live in object storage)
  post_hashtags  — extracted hashtags
  mentions       — extracted @mentions

The feed pipeline only reads these tables. Timestamps are naive UTC.
"""
import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from feedrank.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class PostKind(str, enum.Enum):
    ORIGINAL = "ORIGINAL"
    REPLY = "REPLY"
    QUOTE = "QUOTE"


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    posts = relationship("Post", back_populates="author", lazy="noload")


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    followee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        # "who follows user X?" — author follower counts, common-follow signal
        Index("idx_followee", "followee_id"),
    )


class Block(Base):
    __tablename__ = "blocks"

    blocker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    blocked_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_blocks_blocked", "blocked_id"),)


class Mute(Base):
    __tablename__ = "mutes"

    muter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    muted_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class Interest(Base):
    __tablename__ = "interests"

    interest_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class UserInterest(Base):
    __tablename__ = "user_interests"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    interest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("interests.interest_id"), primary_key=True
    )


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    # NULL for media-only posts
    content: Mapped[Optional[str]] = mapped_column(Text)
    kind: Mapped[PostKind] = mapped_column(
        Enum(PostKind, name="post_kind", native_enum=False, length=10),
        default=PostKind.ORIGINAL,
        nullable=False,
    )
    # Set iff kind is REPLY or QUOTE
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("posts.post_id")
    )
    visibility: Mapped[str] = mapped_column(String(20), default="PUBLIC", nullable=False)
    interest_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("interests.interest_id")
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    author = relationship("User", back_populates="posts", lazy="joined")

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_parent", "parent_id"),
        Index("idx_posts_interest", "interest_id"),
    )


class Repost(Base):
    __tablename__ = "reposts"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_reposts_user", "user_id"),)


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_likes_post", "post_id"),)


class Media(Base):
    __tablename__ = "media"

    media_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    media_url: Mapped[str] = mapped_column(String(500), nullable=False)
    media_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'IMAGE' | 'VIDEO'

    __table_args__ = (Index("idx_media_post", "post_id"),)


class PostHashtag(Base):
    __tablename__ = "post_hashtags"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    hashtag: Mapped[str] = mapped_column(String(100), primary_key=True)


class Mention(Base):
    __tablename__ = "mentions"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
