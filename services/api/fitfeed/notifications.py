"""
In-app notification records.

Engagement actions call `notify()` after their own write succeeded. A
notification is a side effect: it is never sent to the actor themself, and
a failure to record it is logged and counted but never fails the action.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed.models import Notification
from fitfeed.telemetry import NOTIFICATION_FAILURES_TOTAL

logger = logging.getLogger(__name__)

POST_LIKE = "post_like"
FOLLOW = "follow"
ROUTINE_LIKE = "routine_like"
ROUTINE_SAVE = "routine_save"
COMMENT_LIKE = "comment_like"
COMMENT_REPLY = "comment_reply"
POST_COMMENT = "post_comment"

NOTIFICATION_TYPES = (
    POST_LIKE,
    FOLLOW,
    ROUTINE_LIKE,
    ROUTINE_SAVE,
    COMMENT_LIKE,
    COMMENT_REPLY,
    POST_COMMENT,
)


async def notify(
    db: AsyncSession,
    *,
    recipient_id: str,
    actor_id: str,
    type: str,
    post_id: Optional[str] = None,
    routine_id: Optional[str] = None,
    comment_id: Optional[str] = None,
) -> Optional[Notification]:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    if recipient_id == actor_id:
        return None

    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        type=type,
        post_id=post_id,
        routine_id=routine_id,
        comment_id=comment_id,
    )
    try:
        # Savepoint: a failed insert must not roll back the action itself
        async with db.begin_nested():
            db.add(notification)
    except SQLAlchemyError as exc:
        logger.warning(
            "Could not record %s notification for %s: %s", type, recipient_id, exc
        )
        NOTIFICATION_FAILURES_TOTAL.labels(type=type).inc()
        return None

    logger.debug("Notification %s: %s → %s", type, actor_id, recipient_id)
    return notification
