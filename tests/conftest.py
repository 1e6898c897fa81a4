"""Pytest fixtures for the feed ranking test suite."""

import os

# Must be set before feedrank.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TRACING_ENABLED", "false")

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from feedrank.database import Base, build_engine
from feedrank.feed.retrieval import utcnow
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


@pytest.fixture(scope="function")
async def engine():
    """A fresh in-memory database for each test."""
    engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def session(engine):
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


class World:
    """Builds users, posts and relations; ids are the readable names given."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.now = utcnow()

    def ago(self, hours: float = 0, days: float = 0):
        return self.now - timedelta(hours=hours, days=days)

    def user(self, username: str, verified: bool = False, display_name: str = None) -> str:
        self.session.add(
            User(
                user_id=username,
                username=username,
                display_name=display_name,
                avatar_url=f"https://cdn.example.com/{username}.png",
                is_verified=verified,
            )
        )
        return username

    def interest(self, name: str, active: bool = True) -> str:
        self.session.add(Interest(interest_id=name, name=name, is_active=active))
        return name

    def post(
        self,
        post_id: str,
        author: str,
        content: str = "hello",
        kind: PostKind = PostKind.ORIGINAL,
        parent: str = None,
        interest: str = None,
        hours_ago: float = 1,
        deleted: bool = False,
        media: tuple = (),
        hashtags: tuple = (),
        mentions: tuple = (),
    ) -> str:
        self.session.add(
            Post(
                post_id=post_id,
                user_id=author,
                content=content,
                kind=kind,
                parent_id=parent,
                interest_id=interest,
                is_deleted=deleted,
                created_at=self.ago(hours=hours_ago),
            )
        )
        for i, (url, media_type) in enumerate(media):
            self.session.add(
                Media(media_id=f"{post_id}-m{i}", post_id=post_id, media_url=url, media_type=media_type)
            )
        for tag in hashtags:
            self.session.add(PostHashtag(post_id=post_id, hashtag=tag))
        for user_id in mentions:
            self.session.add(Mention(post_id=post_id, user_id=user_id))
        return post_id

    def quote(self, post_id: str, author: str, parent: str, **kwargs) -> str:
        return self.post(post_id, author, kind=PostKind.QUOTE, parent=parent, **kwargs)

    def reply(self, post_id: str, author: str, parent: str, **kwargs) -> str:
        return self.post(post_id, author, kind=PostKind.REPLY, parent=parent, **kwargs)

    def repost(self, user: str, post_id: str, hours_ago: float = 1) -> None:
        self.session.add(Repost(post_id=post_id, user_id=user, created_at=self.ago(hours=hours_ago)))

    def follow(self, follower: str, followee: str) -> None:
        self.session.add(Follow(follower_id=follower, followee_id=followee))

    def block(self, blocker: str, blocked: str) -> None:
        self.session.add(Block(blocker_id=blocker, blocked_id=blocked))

    def mute(self, muter: str, muted: str) -> None:
        self.session.add(Mute(muter_id=muter, muted_id=muted))

    def like(self, user: str, post_id: str) -> None:
        self.session.add(Like(user_id=user, post_id=post_id))

    async def commit(self) -> None:
        await self.session.commit()


@pytest.fixture
def world(session):
    return World(session)


class RecordingScorer:
    """Stands in for the quality client; remembers every batch it is given."""

    def __init__(self, scores=None, error: Exception = None) -> None:
        self.scores = scores or {}
        self.error = error
        self.calls = []

    async def get_quality_scores(self, features):
        self.calls.append([f.post_id for f in features])
        if self.error is not None:
            raise self.error
        return {f.post_id: self.scores[f.post_id] for f in features if f.post_id in self.scores}


@pytest.fixture
def scorer():
    return RecordingScorer()
