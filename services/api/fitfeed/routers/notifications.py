"""
Notification endpoints:
  GET    /notifications?user_id=          — newest first, with unread count
  POST   /notifications/{id}/read         — mark one as read (recipient only)
  POST   /notifications/read-all          — mark all of a user's as read
  DELETE /notifications/{id}?user_id=     — delete one (recipient only)
  DELETE /notifications?user_id=          — clear all of a user's
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement
from fitfeed.database import get_db
from fitfeed.models import Notification, User
from fitfeed.schemas import NotificationList, NotificationResponse, UserAction, UserSummary

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=NotificationList)
async def list_notifications(
    user_id: str = Query(...),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Notification, User)
        .outerjoin(User, User.id == Notification.actor_id)
        .where(Notification.recipient_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    items = [
        NotificationResponse(
            id=n.id,
            recipient_id=n.recipient_id,
            actor_id=n.actor_id,
            type=n.type,
            post_id=n.post_id,
            routine_id=n.routine_id,
            comment_id=n.comment_id,
            read=n.read,
            created_at=n.created_at,
            actor=UserSummary.model_validate(actor) if actor else None,
        )
        for n, actor in rows.all()
    ]
    unread = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False))
    )
    return NotificationList(notifications=items, unread_count=unread or 0)


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_read(body: UserAction, db: AsyncSession = Depends(get_db)):
    await db.execute(
        update(Notification)
        .where(Notification.recipient_id == body.user_id, Notification.read.is_(False))
        .values(read=True)
    )


async def _own_notification(db: AsyncSession, notification_id: str, user_id: str) -> Notification:
    notification = await engagement.get_or_404(db, Notification, notification_id, "Notification")
    if notification.recipient_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own notifications",
        )
    return notification


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(notification_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    notification = await _own_notification(db, notification_id, body.user_id)
    notification.read = True
    await db.flush()


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    user_id: str = Query(..., description="Requesting user"),
    db: AsyncSession = Depends(get_db),
):
    notification = await _own_notification(db, notification_id, user_id)
    await db.delete(notification)
    await db.flush()


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def clear_notifications(user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    result = await db.execute(delete(Notification).where(Notification.recipient_id == user_id))
    logger.info("Cleared %s notifications for %s", result.rowcount, user_id)
