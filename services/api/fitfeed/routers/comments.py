"""
Comment endpoints:
  GET    /posts/{post_id}/comments  — ranked top-level comments with replies
  POST   /posts/{post_id}/comments  — comment, or reply to a top-level comment
  POST   /comments/{id}/like        — like / unlike toggle
  PATCH  /comments/{id}             — edit (comment author only)
  DELETE /comments/{id}             — delete with replies (author or post owner)
  POST   /comments/{id}/pin         — pin   (post owner only)
  POST   /comments/{id}/unpin       — unpin (post owner only)

Comments form a two-level tree: a reply always points at a top-level
comment, never at another reply.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement, notifications, ranking
from fitfeed.database import get_db
from fitfeed.models import Comment, CommentLike, Post, User, utcnow
from fitfeed.schemas import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    LikeToggleResponse,
    UserAction,
    UserSummary,
)
from fitfeed.telemetry import RANKING_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _comment_response(
    comment: Comment,
    author: Optional[User],
    liked: set[str],
    replies: Optional[list[CommentResponse]] = None,
) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        text=comment.text,
        parent_id=comment.parent_id,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        likes_count=comment.likes_count or 0,
        pinned=bool(comment.pinned),
        is_liked=comment.id in liked,
        user=UserSummary.model_validate(author) if author else None,
        replies=replies or [],
    )


async def _require_post_owner(db: AsyncSession, comment: Comment, user_id: str, action: str) -> Post:
    post = await engagement.get_or_404(db, Post, comment.post_id, "Post")
    if post.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the post owner can {action} comments",
        )
    return post


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    viewer_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Top-level comments with their replies (oldest reply first).

    Display order: pinned comments first, then by comment hotness, so a
    busy recent comment outranks an old one with the same likes.
    """
    await engagement.get_or_404(db, Post, post_id, "Post")

    rows = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id, Comment.parent_id.is_(None))
        .order_by(Comment.pinned.desc(), Comment.created_at.desc())
    )
    top_level = rows.scalars().all()
    if not top_level:
        return []

    top_ids = [c.id for c in top_level]
    reply_rows = await db.execute(
        select(Comment)
        .where(Comment.parent_id.in_(top_ids))
        .order_by(Comment.created_at.asc())
    )
    replies = reply_rows.scalars().all()

    all_comments = list(top_level) + list(replies)
    authors = await db.execute(
        select(User).where(User.id.in_({c.user_id for c in all_comments}))
    )
    author_map = {u.id: u for u in authors.scalars().all()}

    liked: set[str] = set()
    if viewer_id:
        liked_rows = await db.execute(
            select(CommentLike.comment_id).where(
                CommentLike.user_id == viewer_id,
                CommentLike.comment_id.in_([c.id for c in all_comments]),
            )
        )
        liked = set(liked_rows.scalars().all())

    replies_by_parent: dict[str, list[CommentResponse]] = {cid: [] for cid in top_ids}
    for reply in replies:
        replies_by_parent[reply.parent_id].append(
            _comment_response(reply, author_map.get(reply.user_id), liked)
        )

    responses = [
        _comment_response(c, author_map.get(c.user_id), liked, replies_by_parent[c.id])
        for c in top_level
    ]

    with RANKING_LATENCY.labels(kind="comments").time():
        return ranking.sort_comments(responses, datetime.now(timezone.utc))


@router.post(
    "/posts/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(post_id: str, body: CommentCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("add_comment") as span:
        post = await engagement.get_or_404(db, Post, post_id, "Post")
        author = await engagement.get_or_404(db, User, body.user_id, "User")

        parent = None
        if body.parent_id:
            parent = await engagement.get_or_404(db, Comment, body.parent_id, "Parent comment")
            if parent.post_id != post_id:
                raise HTTPException(status_code=400, detail="Parent comment belongs to another post")
            if parent.parent_id is not None:
                raise HTTPException(status_code=400, detail="Cannot reply to a reply")

        comment = Comment(
            post_id=post_id,
            user_id=body.user_id,
            text=body.text,
            parent_id=body.parent_id,
        )
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        span.set_attribute("comment.id", comment.id)

        if parent is not None:
            await notifications.notify(
                db,
                recipient_id=parent.user_id,
                actor_id=body.user_id,
                type=notifications.COMMENT_REPLY,
                comment_id=comment.id,
            )
        else:
            await notifications.notify(
                db,
                recipient_id=post.user_id,
                actor_id=body.user_id,
                type=notifications.POST_COMMENT,
                post_id=post_id,
                comment_id=comment.id,
            )

        logger.info("Comment %s on post %s by %s", comment.id, post_id, body.user_id)
        return _comment_response(comment, author, set())


@router.post("/comments/{comment_id}/like", response_model=LikeToggleResponse)
async def like_comment(comment_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    liked, count = await engagement.toggle_comment_like(db, comment_id, body.user_id)
    return LikeToggleResponse(liked=liked, likes_count=count)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def edit_comment(comment_id: str, body: CommentUpdate, db: AsyncSession = Depends(get_db)):
    comment = await engagement.get_or_404(db, Comment, comment_id, "Comment")
    if comment.user_id != body.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own comments",
        )

    comment.text = body.text
    comment.updated_at = utcnow()
    await db.flush()

    author = await db.get(User, comment.user_id)
    return _comment_response(comment, author, set())


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    user_id: str = Query(..., description="Requesting user"),
    db: AsyncSession = Depends(get_db),
):
    """The comment author or the post owner may delete; replies go with it."""
    with tracer.start_as_current_span("delete_comment"):
        comment = await engagement.get_or_404(db, Comment, comment_id, "Comment")
        if comment.user_id != user_id:
            post = await engagement.get_or_404(db, Post, comment.post_id, "Post")
            if post.user_id != user_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="You can only delete your own comments unless you are the post owner",
                )

        tree = select(Comment.id).where(
            or_(Comment.id == comment_id, Comment.parent_id == comment_id)
        )
        await db.execute(delete(CommentLike).where(CommentLike.comment_id.in_(tree)))
        await db.execute(delete(Comment).where(Comment.parent_id == comment_id))
        await db.delete(comment)
        await db.flush()
        logger.info("Comment %s deleted by %s", comment_id, user_id)


async def _set_pinned(db: AsyncSession, comment_id: str, user_id: str, pinned: bool) -> Comment:
    comment = await engagement.get_or_404(db, Comment, comment_id, "Comment")
    await _require_post_owner(db, comment, user_id, "pin" if pinned else "unpin")
    if comment.parent_id is not None:
        raise HTTPException(status_code=400, detail="Only top-level comments can be pinned")
    comment.pinned = pinned
    await db.flush()
    return comment


@router.post("/comments/{comment_id}/pin", status_code=status.HTTP_204_NO_CONTENT)
async def pin_comment(comment_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    # Other pinned comments stay pinned
    await _set_pinned(db, comment_id, body.user_id, True)


@router.post("/comments/{comment_id}/unpin", status_code=status.HTTP_204_NO_CONTENT)
async def unpin_comment(comment_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    await _set_pinned(db, comment_id, body.user_id, False)
