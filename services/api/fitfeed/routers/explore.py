"""
Explore endpoints — GET /explore/...

  trending-posts   Newest posts by other users, one offset/limit page at a
                   time; each page is re-ordered by post hotness before it
                   is returned. has_more is true while pages come back full.
  following        Posts by the accounts the user follows, newest first.
  recent-searches  Per-user recent search list kept in Redis.

Pagination is plain offset/limit over created_at; a write between two page
requests can shift rows across the page boundary.
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement, ranking
from fitfeed.clients import redis_client
from fitfeed.config import settings
from fitfeed.database import get_db
from fitfeed.models import Follow, Post, User
from fitfeed.routers.posts import hydrate_posts
from fitfeed.schemas import PostPage, RecentSearch, RecentSearchCreate
from fitfeed.telemetry import EXPLORE_LATENCY, RANKING_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get("/trending-posts", response_model=PostPage)
async def trending_posts(
    user_id: str = Query(..., description="ID of the requesting user"),
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.explore_page_size, ge=1, le=settings.explore_page_max),
    db: AsyncSession = Depends(get_db),
):
    start_time = time.time()

    with tracer.start_as_current_span("trending_posts") as span:
        span.set_attribute("user.id", user_id)
        await engagement.get_or_404(db, User, user_id, "User")

        rows = await db.execute(
            select(Post)
            .where(Post.user_id != user_id)
            .order_by(Post.created_at.desc(), Post.id)
            .offset(offset)
            .limit(limit)
        )
        page = rows.scalars().all()
        posts = await hydrate_posts(db, page, user_id)

        with RANKING_LATENCY.labels(kind="posts").time():
            ranked = ranking.rank_posts(
                posts,
                datetime.now(timezone.utc),
                likes_field="likes",
                comments_field="comments_count",
            )
        for post, score in ranked:
            post.hotness_score = round(score, 6)

        span.set_attribute("explore.page_size", len(page))

    EXPLORE_LATENCY.labels(page="trending_posts").observe(time.time() - start_time)
    return PostPage(
        posts=[post for post, _ in ranked],
        offset=offset,
        limit=limit,
        has_more=len(page) == limit,
    )


@router.get("/following", response_model=PostPage)
async def following_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.explore_page_size, ge=1, le=settings.explore_page_max),
    db: AsyncSession = Depends(get_db),
):
    start_time = time.time()

    with tracer.start_as_current_span("following_feed") as span:
        span.set_attribute("user.id", user_id)
        await engagement.get_or_404(db, User, user_id, "User")

        followed = select(Follow.following_id).where(Follow.follower_id == user_id)
        rows = await db.execute(
            select(Post)
            .where(Post.user_id.in_(followed))
            .order_by(Post.created_at.desc(), Post.id)
            .offset(offset)
            .limit(limit)
        )
        page = rows.scalars().all()
        posts = await hydrate_posts(db, page, user_id)

    EXPLORE_LATENCY.labels(page="following").observe(time.time() - start_time)
    return PostPage(posts=posts, offset=offset, limit=limit, has_more=len(page) == limit)


# ─────────────────────────── Recent searches ─────────────────────────────

@router.get("/recent-searches", response_model=list[RecentSearch])
async def list_recent_searches(user_id: str = Query(...)):
    entries = await redis_client.get_recent_searches(user_id)
    searches = []
    for entry in entries:
        try:
            searches.append(RecentSearch.model_validate(entry))
        except ValueError as exc:
            logger.warning("Skipping invalid recent search for %s: %s", user_id, exc)
    return searches


@router.post("/recent-searches", status_code=status.HTTP_204_NO_CONTENT)
async def add_recent_search(body: RecentSearchCreate):
    entry = RecentSearch(type=body.type, query=body.query, target_id=body.target_id)
    await redis_client.add_recent_search(body.user_id, entry.model_dump())


@router.delete("/recent-searches", status_code=status.HTTP_204_NO_CONTENT)
async def clear_recent_searches(user_id: str = Query(...)):
    await redis_client.clear_recent_searches(user_id)
