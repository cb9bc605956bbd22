"""
Engagement write paths: likes, saves, follows, routine usage.

Every toggle follows the same sequence:

  1. Check the current state (does the edge row exist?).
  2. Insert or delete the edge row.
  3. Adjust the denormalized counter on the parent record.
  4. Emit a notification to the parent's owner (inserts only).

Counters are adjusted with a single UPDATE ... SET n = n ± 1 so concurrent
requests cannot lose updates, and decrements never go below zero. Edge rows
have composite primary keys; when a concurrent request inserts the same row
first, the IntegrityError is absorbed and the caller gets the state that
now exists, without counting twice. Removals are a single DELETE and only
decrement the counter when that DELETE actually removed a row.
"""
import logging
from typing import Any

from fastapi import HTTPException
from opentelemetry import trace
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import notifications
from fitfeed.models import (
    Comment,
    CommentLike,
    Follow,
    Post,
    PostLike,
    Routine,
    RoutineLike,
    SavedRoutine,
    User,
)
from fitfeed.telemetry import ENGAGEMENT_ACTIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def get_or_404(db: AsyncSession, model: Any, ident: Any, label: str):
    obj = await db.get(model, ident)
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj


async def bump_counter(
    db: AsyncSession, model: Any, counter: str, ident: str, delta: int
) -> int:
    """Atomically add `delta` to a counter column and return the new value."""
    column = getattr(model, counter)
    stmt = update(model).where(model.id == ident).values({column: column + delta})
    if delta < 0:
        stmt = stmt.where(column >= -delta)
    await db.execute(stmt)
    return await read_counter(db, model, counter, ident)


async def read_counter(db: AsyncSession, model: Any, counter: str, ident: str) -> int:
    column = getattr(model, counter)
    return await db.scalar(select(column).where(model.id == ident)) or 0


async def _delete_edge(db: AsyncSession, model: Any, **keys: str) -> bool:
    """Delete an edge row; False when a concurrent request removed it first."""
    result = await db.execute(delete(model).filter_by(**keys))
    if not result.rowcount:
        logger.info("%s already removed", model.__tablename__)
        return False
    return True


async def _insert_edge(db: AsyncSession, row: Any) -> bool:
    """Insert an edge row; False when an identical row already exists."""
    try:
        async with db.begin_nested():
            db.add(row)
    except IntegrityError:
        logger.info("Duplicate %s ignored", type(row).__tablename__)
        return False
    return True


# ─────────────────────────── Posts ───────────────────────────────────────

async def toggle_post_like(db: AsyncSession, post_id: str, user_id: str) -> tuple[bool, int]:
    """Like the post, or unlike it if already liked. Returns (liked, likes_count)."""
    with tracer.start_as_current_span("toggle_post_like"):
        post = await get_or_404(db, Post, post_id, "Post")
        await get_or_404(db, User, user_id, "User")

        if await db.get(PostLike, (post_id, user_id)):
            if not await _delete_edge(db, PostLike, post_id=post_id, user_id=user_id):
                return False, await read_counter(db, Post, "likes_count", post_id)
            count = await bump_counter(db, Post, "likes_count", post_id, -1)
            ENGAGEMENT_ACTIONS_TOTAL.labels(action="post_unlike").inc()
            return False, count

        if not await _insert_edge(db, PostLike(post_id=post_id, user_id=user_id)):
            return True, post.likes_count

        count = await bump_counter(db, Post, "likes_count", post_id, 1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="post_like").inc()
        await notifications.notify(
            db,
            recipient_id=post.user_id,
            actor_id=user_id,
            type=notifications.POST_LIKE,
            post_id=post_id,
        )
        return True, count


# ─────────────────────────── Comments ────────────────────────────────────

async def toggle_comment_like(
    db: AsyncSession, comment_id: str, user_id: str
) -> tuple[bool, int]:
    with tracer.start_as_current_span("toggle_comment_like"):
        comment = await get_or_404(db, Comment, comment_id, "Comment")
        await get_or_404(db, User, user_id, "User")

        if await db.get(CommentLike, (comment_id, user_id)):
            if not await _delete_edge(db, CommentLike, comment_id=comment_id, user_id=user_id):
                return False, await read_counter(db, Comment, "likes_count", comment_id)
            count = await bump_counter(db, Comment, "likes_count", comment_id, -1)
            ENGAGEMENT_ACTIONS_TOTAL.labels(action="comment_unlike").inc()
            return False, count

        if not await _insert_edge(db, CommentLike(comment_id=comment_id, user_id=user_id)):
            return True, comment.likes_count

        count = await bump_counter(db, Comment, "likes_count", comment_id, 1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="comment_like").inc()
        await notifications.notify(
            db,
            recipient_id=comment.user_id,
            actor_id=user_id,
            type=notifications.COMMENT_LIKE,
            comment_id=comment_id,
        )
        return True, count


# ─────────────────────────── Routines ────────────────────────────────────

async def toggle_routine_like(
    db: AsyncSession, routine_id: str, user_id: str
) -> tuple[bool, int]:
    with tracer.start_as_current_span("toggle_routine_like"):
        routine = await get_or_404(db, Routine, routine_id, "Routine")
        await get_or_404(db, User, user_id, "User")

        if await db.get(RoutineLike, (routine_id, user_id)):
            if not await _delete_edge(db, RoutineLike, routine_id=routine_id, user_id=user_id):
                return False, await read_counter(db, Routine, "like_count", routine_id)
            count = await bump_counter(db, Routine, "like_count", routine_id, -1)
            ENGAGEMENT_ACTIONS_TOTAL.labels(action="routine_unlike").inc()
            return False, count

        if not await _insert_edge(db, RoutineLike(routine_id=routine_id, user_id=user_id)):
            return True, routine.like_count

        count = await bump_counter(db, Routine, "like_count", routine_id, 1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="routine_like").inc()
        await notifications.notify(
            db,
            recipient_id=routine.user_id,
            actor_id=user_id,
            type=notifications.ROUTINE_LIKE,
            routine_id=routine_id,
        )
        return True, count


async def toggle_routine_save(
    db: AsyncSession, routine_id: str, user_id: str
) -> tuple[bool, int]:
    with tracer.start_as_current_span("toggle_routine_save"):
        routine = await get_or_404(db, Routine, routine_id, "Routine")
        await get_or_404(db, User, user_id, "User")

        if await db.get(SavedRoutine, (routine_id, user_id)):
            if not await _delete_edge(db, SavedRoutine, routine_id=routine_id, user_id=user_id):
                return False, await read_counter(db, Routine, "save_count", routine_id)
            count = await bump_counter(db, Routine, "save_count", routine_id, -1)
            ENGAGEMENT_ACTIONS_TOTAL.labels(action="routine_unsave").inc()
            return False, count

        if not await _insert_edge(db, SavedRoutine(routine_id=routine_id, user_id=user_id)):
            return True, routine.save_count

        count = await bump_counter(db, Routine, "save_count", routine_id, 1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="routine_save").inc()
        await notifications.notify(
            db,
            recipient_id=routine.user_id,
            actor_id=user_id,
            type=notifications.ROUTINE_SAVE,
            routine_id=routine_id,
        )
        return True, count


async def record_routine_use(db: AsyncSession, routine_id: str) -> int:
    """Count one workout started from the routine; returns the new usage_count."""
    await get_or_404(db, Routine, routine_id, "Routine")
    ENGAGEMENT_ACTIONS_TOTAL.labels(action="routine_use").inc()
    return await bump_counter(db, Routine, "usage_count", routine_id, 1)


# ─────────────────────────── Follows ─────────────────────────────────────

async def follow_user(db: AsyncSession, follower_id: str, following_id: str) -> bool:
    """
    Create a follower → following edge. Returns False when it already existed.

    Both profiles' follower/following counters move with the edge.
    """
    with tracer.start_as_current_span("follow_user"):
        if follower_id == following_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")

        for uid in (follower_id, following_id):
            await get_or_404(db, User, uid, f"User {uid}")

        if await db.get(Follow, (follower_id, following_id)):
            return False  # already following

        if not await _insert_edge(db, Follow(follower_id=follower_id, following_id=following_id)):
            return False

        await bump_counter(db, User, "following_count", follower_id, 1)
        await bump_counter(db, User, "followers_count", following_id, 1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="follow").inc()
        logger.info("%s followed %s", follower_id, following_id)

        await notifications.notify(
            db,
            recipient_id=following_id,
            actor_id=follower_id,
            type=notifications.FOLLOW,
        )
        return True


async def unfollow_user(db: AsyncSession, follower_id: str, following_id: str) -> bool:
    with tracer.start_as_current_span("unfollow_user"):
        if follower_id == following_id:
            raise HTTPException(status_code=400, detail="Cannot unfollow yourself")

        for uid in (follower_id, following_id):
            await get_or_404(db, User, uid, f"User {uid}")

        if not await _delete_edge(db, Follow, follower_id=follower_id, following_id=following_id):
            return False

        await bump_counter(db, User, "following_count", follower_id, -1)
        await bump_counter(db, User, "followers_count", following_id, -1)
        ENGAGEMENT_ACTIONS_TOTAL.labels(action="unfollow").inc()
        logger.info("%s unfollowed %s", follower_id, following_id)
        return True
