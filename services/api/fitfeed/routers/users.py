"""
User management endpoints:
  POST /users                    — create a profile
  GET  /users/search?q=          — find profiles by username
  GET  /users/{id}               — fetch a profile (with is_following for a viewer)
  POST /users/follow             — follow another user
  POST /users/unfollow           — unfollow
  GET  /users/{id}/followers     — list followers
  GET  /users/{id}/following     — list followed users
  GET  /users/{id}/suggestions   — people to follow
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement
from fitfeed.config import settings
from fitfeed.database import get_db
from fitfeed.models import Follow, User
from fitfeed.schemas import (
    FollowRequest,
    SuggestedUser,
    UserCreate,
    UserResponse,
    UserSummary,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def is_following(db: AsyncSession, follower_id: str, following_id: str) -> bool:
    return await db.get(Follow, (follower_id, following_id)) is not None


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_user"):
        existing = await db.execute(
            select(User).where(User.username == body.username)
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Username '{body.username}' already taken",
            )

        user = User(
            username=body.username,
            name=body.name,
            bio=body.bio,
            avatar_url=body.avatar_url,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info("Created user %s (id=%s)", user.username, user.id)
        return UserResponse.model_validate(user)


@router.get("/search", response_model=list[UserSummary])
async def search_users(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(User)
        .where(User.username.ilike(f"%{q}%"))
        .order_by(User.followers_count.desc(), User.username)
        .limit(limit)
    )
    return [UserSummary.model_validate(u) for u in rows.scalars().all()]


@router.post("/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    """Create a follower → following edge; following twice is a no-op."""
    await engagement.follow_user(db, body.follower_id, body.following_id)


@router.post("/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    await engagement.unfollow_user(db, body.follower_id, body.following_id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    viewer_id: Optional[str] = Query(None, description="Requesting user"),
    db: AsyncSession = Depends(get_db),
):
    user = await engagement.get_or_404(db, User, user_id, "User")
    response = UserResponse.model_validate(user)
    if viewer_id and viewer_id != user_id:
        response.is_following = await is_following(db, viewer_id, user_id)
    return response


@router.get("/{user_id}/followers", response_model=list[UserSummary])
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(User)
        .join(Follow, Follow.follower_id == User.id)
        .where(Follow.following_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return [UserSummary.model_validate(u) for u in rows.scalars().all()]


@router.get("/{user_id}/following", response_model=list[UserSummary])
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(User)
        .join(Follow, Follow.following_id == User.id)
        .where(Follow.follower_id == user_id)
        .order_by(Follow.created_at.desc())
    )
    return [UserSummary.model_validate(u) for u in rows.scalars().all()]


@router.get("/{user_id}/suggestions", response_model=list[SuggestedUser])
async def suggested_users(user_id: str, db: AsyncSession = Depends(get_db)):
    """
    People to follow: the newest profiles the user doesn't follow yet
    (never themself), ordered by how many followers they have.
    """
    followed = select(Follow.following_id).where(Follow.follower_id == user_id)
    follower_count = (
        select(func.count())
        .select_from(Follow)
        .where(Follow.following_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    rows = await db.execute(
        select(User, follower_count)
        .where(User.id != user_id, User.id.not_in(followed))
        .order_by(User.created_at.desc())
        .limit(settings.suggested_users_limit)
    )
    suggestions = [
        SuggestedUser(
            id=u.id,
            username=u.username,
            name=u.name,
            avatar_url=u.avatar_url,
            follower_count=count or 0,
        )
        for u, count in rows.all()
    ]
    suggestions.sort(key=lambda s: s.follower_count, reverse=True)
    return suggestions
