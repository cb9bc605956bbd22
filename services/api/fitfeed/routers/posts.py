"""
Post endpoints:
  POST   /posts             — create a post (media uploaded to MinIO)
  GET    /posts/{id}        — fetch a single post
  PATCH  /posts/{id}        — edit text / drop media (author only)
  POST   /posts/{id}/media  — attach more media (author only)
  DELETE /posts/{id}        — delete a post and everything hanging off it
  POST   /posts/{id}/like   — like / unlike toggle
  GET    /posts/{id}/likes  — who liked the post
"""
import logging
from collections import defaultdict
from typing import Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement
from fitfeed.clients import storage_client
from fitfeed.database import get_db
from fitfeed.models import (
    Comment,
    CommentLike,
    Post,
    PostLike,
    PostMedia,
    User,
    Workout,
)
from fitfeed.schemas import (
    LikeToggleResponse,
    MediaAdd,
    MediaResponse,
    MediaUpload,
    PostCreate,
    PostResponse,
    PostUpdate,
    UserAction,
    UserSummary,
)
from fitfeed.telemetry import POSTS_CREATED_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _media_response(media: PostMedia) -> MediaResponse:
    return MediaResponse(
        id=media.id,
        type=media.media_type,
        uri=storage_client.public_url(media.storage_path),
        width=media.width,
        height=media.height,
        duration=media.duration,
        order_index=media.order_index,
    )


async def hydrate_posts(
    db: AsyncSession,
    posts: Sequence[Post],
    viewer_id: Optional[str] = None,
) -> list[PostResponse]:
    """Attach author, ordered media, comment count and viewer like state."""
    if not posts:
        return []
    post_ids = [p.id for p in posts]

    authors = await db.execute(
        select(User).where(User.id.in_({p.user_id for p in posts}))
    )
    author_map = {u.id: u for u in authors.scalars().all()}

    media_rows = await db.execute(
        select(PostMedia)
        .where(PostMedia.post_id.in_(post_ids))
        .order_by(PostMedia.order_index)
    )
    media_map: dict[str, list[MediaResponse]] = defaultdict(list)
    for media in media_rows.scalars().all():
        media_map[media.post_id].append(_media_response(media))

    counts = await db.execute(
        select(Comment.post_id, func.count())
        .where(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
    )
    comment_counts = {pid: n for pid, n in counts.all()}

    liked: set[str] = set()
    if viewer_id:
        rows = await db.execute(
            select(PostLike.post_id).where(
                PostLike.user_id == viewer_id, PostLike.post_id.in_(post_ids)
            )
        )
        liked = set(rows.scalars().all())

    responses = []
    for post in posts:
        author = author_map.get(post.user_id)
        responses.append(
            PostResponse(
                id=post.id,
                user=UserSummary.model_validate(author) if author else None,
                title=post.title,
                text=post.description,
                workout_id=post.workout_id,
                created_at=post.created_at,
                media=media_map.get(post.id, []),
                likes=post.likes_count or 0,
                comments_count=comment_counts.get(post.id, 0),
                is_liked=post.id in liked,
            )
        )
    return responses


async def _require_author(db: AsyncSession, post_id: str, user_id: str, action: str) -> Post:
    post = await engagement.get_or_404(db, Post, post_id, "Post")
    if post.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own posts",
        )
    return post


async def _store_media(
    db: AsyncSession,
    post: Post,
    uploads: Sequence[MediaUpload],
    start_index: int,
) -> int:
    """Upload each item and record it; returns how many were stored."""
    stored = 0
    for i, item in enumerate(uploads):
        try:
            key = storage_client.upload_media(
                post.user_id, start_index + i, item.data_base64, item.media_type, item.ext
            )
        except Exception as exc:
            logger.warning("Media upload failed for post %s: %s", post.id, exc)
            continue
        db.add(
            PostMedia(
                post_id=post.id,
                storage_path=key,
                media_type=item.media_type,
                width=item.width,
                height=item.height,
                duration=item.duration,
                order_index=start_index + i,
            )
        )
        stored += 1
    await db.flush()
    return stored


async def _delete_media_rows(db: AsyncSession, rows: Sequence[PostMedia]) -> None:
    # Storage first; a missing object must not block the row delete
    for media in rows:
        storage_client.delete_media(media.storage_path)
    for media in rows:
        await db.delete(media)
    await db.flush()


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreate, db: AsyncSession = Depends(get_db)):
    """
    Post creation path:

    1. Validate the author exists, and the shared workout if one is given.
    2. Persist metadata.
    3. Upload media to MinIO and record one post_media row per item.
    4. Bump the author's posts_count.
    """
    with tracer.start_as_current_span("create_post") as span:
        await engagement.get_or_404(db, User, body.user_id, "Author")
        if body.workout_id:
            await engagement.get_or_404(db, Workout, body.workout_id, "Workout")

        post = Post(
            user_id=body.user_id,
            title=body.title,
            description=body.description,
            workout_id=body.workout_id,
        )
        db.add(post)
        await db.flush()
        await db.refresh(post)

        span.set_attribute("post.id", post.id)
        span.set_attribute("post.user_id", post.user_id)

        if body.media:
            stored = await _store_media(db, post, body.media, start_index=0)
            span.set_attribute("post.media_count", stored)

        await engagement.bump_counter(db, User, "posts_count", body.user_id, 1)

        POSTS_CREATED_TOTAL.inc()
        logger.info("Post created: %s by user %s", post.id, post.user_id)
        return (await hydrate_posts(db, [post], body.user_id))[0]


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    viewer_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    post = await engagement.get_or_404(db, Post, post_id, "Post")
    return (await hydrate_posts(db, [post], viewer_id))[0]


@router.patch("/{post_id}", response_model=PostResponse)
async def update_post(post_id: str, body: PostUpdate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("update_post"):
        post = await _require_author(db, post_id, body.user_id, "edit")
        if body.description is not None:
            post.description = body.description

        if body.media_to_delete:
            rows = await db.execute(
                select(PostMedia).where(
                    PostMedia.post_id == post_id,
                    PostMedia.id.in_(body.media_to_delete),
                )
            )
            await _delete_media_rows(db, rows.scalars().all())

        await db.flush()
        return (await hydrate_posts(db, [post], body.user_id))[0]


@router.post("/{post_id}/media", response_model=list[MediaResponse])
async def add_post_media(post_id: str, body: MediaAdd, db: AsyncSession = Depends(get_db)):
    """Append media after the post's current last item."""
    with tracer.start_as_current_span("add_post_media"):
        post = await _require_author(db, post_id, body.user_id, "add media to")

        current_max = await db.scalar(
            select(func.max(PostMedia.order_index)).where(PostMedia.post_id == post_id)
        )
        start = 0 if current_max is None else current_max + 1
        await _store_media(db, post, body.media, start_index=start)

        rows = await db.execute(
            select(PostMedia)
            .where(PostMedia.post_id == post_id, PostMedia.order_index >= start)
            .order_by(PostMedia.order_index)
        )
        return [_media_response(m) for m in rows.scalars().all()]


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    user_id: str = Query(..., description="Requesting user"),
    db: AsyncSession = Depends(get_db),
):
    """Delete the post with its media objects, likes and comment tree."""
    with tracer.start_as_current_span("delete_post"):
        post = await _require_author(db, post_id, user_id, "delete")

        media = await db.execute(select(PostMedia).where(PostMedia.post_id == post_id))
        await _delete_media_rows(db, media.scalars().all())

        comment_ids = select(Comment.id).where(Comment.post_id == post_id)
        await db.execute(delete(CommentLike).where(CommentLike.comment_id.in_(comment_ids)))
        # Replies before their parents
        await db.execute(
            delete(Comment).where(Comment.post_id == post_id, Comment.parent_id.is_not(None))
        )
        await db.execute(delete(Comment).where(Comment.post_id == post_id))
        await db.execute(delete(PostLike).where(PostLike.post_id == post_id))

        await db.delete(post)
        await db.flush()
        await engagement.bump_counter(db, User, "posts_count", user_id, -1)
        logger.info("Post deleted: %s by user %s", post_id, user_id)


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def like_post(post_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    """Like the post, or remove the like if it is already there."""
    liked, count = await engagement.toggle_post_like(db, post_id, body.user_id)
    return LikeToggleResponse(liked=liked, likes_count=count)


@router.get("/{post_id}/likes", response_model=list[UserSummary])
async def list_post_likes(post_id: str, db: AsyncSession = Depends(get_db)):
    await engagement.get_or_404(db, Post, post_id, "Post")
    rows = await db.execute(
        select(User)
        .join(PostLike, PostLike.user_id == User.id)
        .where(PostLike.post_id == post_id)
        .order_by(PostLike.created_at.desc())
    )
    return [UserSummary.model_validate(u) for u in rows.scalars().all()]
