#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for trying the feed endpoints.

Creates:
  • 10 users (a few verified)
  • A follow graph (each user follows 4 others)
  • A couple of blocks and mutes
  • 6 interests, each user subscribed to 2
  • 5 posts per user spread over the last 12 days, some with media,
    hashtags and mentions
  • Quotes, replies, reposts and likes across those posts

Writes straight to the database configured in feedrank.config
(DATABASE_URL or the TIDB_* settings):

  DATABASE_URL=sqlite+aiosqlite:///./feed.db python scripts/seed_data.py

All IDs are printed so you can use them in curl commands.
"""
import argparse
import asyncio
import random
import re
from datetime import timedelta

from feedrank.database import AsyncSessionLocal, engine, init_db
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
    UserInterest,
)

BASE_USERS = [
    ("alice_ai", "Alice Chen"),
    ("bob_builder", "Bob Martinez"),
    ("carol_codes", "Carol Singh"),
    ("dave_designs", "Dave Kim"),
    ("eve_engineer", "Eve Johnson"),
    ("frank_feeds", "Frank Williams"),
    ("grace_graphs", "Grace Li"),
    ("henry_hpc", "Henry Brown"),
    ("iris_infra", "Iris Davis"),
    ("jack_ml", "Jack Wilson"),
]

INTERESTS = ["databases", "machine-learning", "infrastructure", "design", "python", "observability"]

SAMPLE_POSTS = [
    ("Just shipped a new feature to production 🚀 Zero downtime deploys are beautiful. #devops", "infrastructure"),
    ("Window functions make top-N-per-group queries a one-liner. #sql", "databases"),
    ("Building a recommendation system from scratch. The cold-start problem is real. #ml", "machine-learning"),
    ("Distributed SQL with TiDB — horizontal scaling without changing your SQL dialect.", "databases"),
    ("The beauty of a well-designed content feed: you never feel like you are searching.", "design"),
    ("Content moderation at scale is a harder problem than the ranking model.", "machine-learning"),
    ("FastAPI async endpoints are a joy. #python", "python"),
    ("Grafana dashboards are the first thing I build for any new service.", "observability"),
    ("Prometheus metrics: the difference between knowing and guessing in production.", "observability"),
    ("A/B testing your ranking model: always ship with a control group. #ml", "machine-learning"),
    ("Typography is 90% of UI design. Fight me.", "design"),
    ("SQLAlchemy Core reads like SQL and composes like Python. #python #sql", "python"),
    ("OpenTelemetry traces finally connected to Jaeger. The waterfall diagram is so satisfying.", "observability"),
    ("k3s is the lightest Kubernetes distribution I have ever run.", "infrastructure"),
    ("Mixing a quality model with social signals beats either one alone. #ml", "machine-learning"),
]

QUOTE_LINES = ["This, exactly.", "Strong disagree, thread below.", "Saving this one.", "Underrated take."]
REPLY_LINES = ["Great point!", "Do you have a link?", "We hit the same issue last month.", "+1"]


def _hashtags(text: str) -> list[str]:
    return sorted(set(re.findall(r"#(\w+)", text)))


async def seed(rng: random.Random) -> None:
    await init_db()
    now = utcnow()

    async with AsyncSessionLocal() as db:
        # ── Users ─────────────────────────────────────────────────────────
        print("Creating users...")
        users: list[User] = []
        for i, (username, display_name) in enumerate(BASE_USERS):
            user = User(
                username=username,
                display_name=display_name,
                avatar_url=f"https://avatars.example.com/{username}.png",
                is_verified=i % 4 == 0,
            )
            db.add(user)
            users.append(user)
        await db.flush()
        user_ids = [u.user_id for u in users]
        for user in users:
            print(f"  ✓ {user.username} ({user.user_id})")

        # ── Interests ─────────────────────────────────────────────────────
        interests = {name: Interest(name=name) for name in INTERESTS}
        db.add_all(interests.values())
        await db.flush()
        for user_id in user_ids:
            for name in rng.sample(INTERESTS, k=2):
                db.add(UserInterest(user_id=user_id, interest_id=interests[name].interest_id))

        # ── Social graph ──────────────────────────────────────────────────
        print("\nCreating follow graph, blocks and mutes...")
        for follower_id in user_ids:
            for followee_id in rng.sample([u for u in user_ids if u != follower_id], k=4):
                db.add(Follow(follower_id=follower_id, followee_id=followee_id))
        db.add(Block(blocker_id=user_ids[0], blocked_id=user_ids[9]))
        db.add(Block(blocker_id=user_ids[8], blocked_id=user_ids[0]))
        db.add(Mute(muter_id=user_ids[0], muted_id=user_ids[7]))

        # ── Original posts ────────────────────────────────────────────────
        print("\nCreating posts...")
        posts: list[Post] = []
        for user_id in user_ids:
            for text, interest in rng.sample(SAMPLE_POSTS, k=5):
                post = Post(
                    user_id=user_id,
                    content=text,
                    interest_id=interests[interest].interest_id,
                    created_at=now - timedelta(hours=rng.uniform(0.5, 24 * 12)),
                )
                db.add(post)
                posts.append(post)
        await db.flush()

        for post in posts:
            for tag in _hashtags(post.content):
                db.add(PostHashtag(post_id=post.post_id, hashtag=tag))
            if rng.random() < 0.3:
                db.add(
                    Media(
                        post_id=post.post_id,
                        media_url=f"https://media.example.com/{post.post_id}.jpg",
                        media_type="IMAGE",
                    )
                )
            if rng.random() < 0.2:
                mentioned = rng.choice([u for u in user_ids if u != post.user_id])
                db.add(Mention(post_id=post.post_id, user_id=mentioned))

        # ── Quotes and replies ────────────────────────────────────────────
        derived = 0
        for post in rng.sample(posts, k=15):
            kind = rng.choice([PostKind.QUOTE, PostKind.REPLY])
            lines = QUOTE_LINES if kind is PostKind.QUOTE else REPLY_LINES
            created_at = post.created_at + timedelta(hours=rng.uniform(0.1, 6))
            db.add(
                Post(
                    user_id=rng.choice([u for u in user_ids if u != post.user_id]),
                    content=rng.choice(lines),
                    kind=kind,
                    parent_id=post.post_id,
                    interest_id=post.interest_id,
                    created_at=min(created_at, now),
                )
            )
            derived += 1
        print(f"  ✓ {len(posts)} posts, {derived} quotes/replies created")

        # ── Reposts and likes ─────────────────────────────────────────────
        print("\nAdding reposts and likes...")
        reposts = likes = 0
        for post in posts:
            for user_id in rng.sample(user_ids, k=rng.randint(0, 2)):
                if user_id == post.user_id:
                    continue
                reshared_at = post.created_at + timedelta(hours=rng.uniform(0.1, 12))
                db.add(Repost(post_id=post.post_id, user_id=user_id, created_at=min(reshared_at, now)))
                reposts += 1
            for user_id in rng.sample(user_ids, k=rng.randint(0, 5)):
                db.add(Like(user_id=user_id, post_id=post.post_id))
                likes += 1
        await db.commit()
        print(f"  ✓ {reposts} reposts, {likes} likes added")

    await engine.dispose()

    # ── Print summary ─────────────────────────────────────────────────────
    u = user_ids[0]
    api_url = "http://localhost:8000"
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print(f"# For-You feed for '{BASE_USERS[0][0]}':")
    print(f"  curl -s '{api_url}/feed/for-you?user_id={u}' | python3 -m json.tool\n")
    print("# Following feed:")
    print(f"  curl -s '{api_url}/feed/following?user_id={u}&limit=20' | python3 -m json.tool\n")
    print("# Explore two interests, newest first:")
    print(
        f"  curl -s '{api_url}/feed/explore?user_id={u}"
        f"&interests=python&interests=databases&sort_by=latest' | python3 -m json.tool\n"
    )
    print("# Top posts of every interest:")
    print(f"  curl -s '{api_url}/feed/explore/all?user_id={u}' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus metrics: http://localhost:8000/metrics")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the feed ranking database")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for reproducible data")
    args = parser.parse_args()
    asyncio.run(seed(random.Random(args.seed)))
