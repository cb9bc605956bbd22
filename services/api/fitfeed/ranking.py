"""
Engagement scoring — hotness formulas used to order already-fetched rows.

Three independently tuned formulas, all of the shape
"weighted engagement / age decay":

  Comment hotness   (likes*2 + replies*3)         / (age_hours + 2) ^ 1.5
  Post hotness      (likes*1.5 + comments*3)      / (age_hours + 2) ^ 1.4
  Routine trending  (saves*3 + usage*2 + likes*1) / ln(age_days + 1)
                    age_days = max(1, floor(age_hours / 24))

Scores are never persisted; they only order a bounded page of records
(≤ 50 rows) before it is returned. Every function takes the reference time
`now` as an argument so results are reproducible; `None` means "current
UTC time". A created_at in the future (clock skew) counts as age zero.

Records may be mappings or attribute objects (ORM rows, Pydantic models).
"""
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence, Union

Timestamp = Union[datetime, float, int, str]

COMMENT_LIKE_WEIGHT = 2
COMMENT_REPLY_WEIGHT = 3
COMMENT_DECAY = 1.5

POST_LIKE_WEIGHT = 1.5
POST_COMMENT_WEIGHT = 3
POST_DECAY = 1.4

ROUTINE_SAVE_WEIGHT = 3
ROUTINE_USAGE_WEIGHT = 2
ROUTINE_LIKE_WEIGHT = 1

AGE_OFFSET_HOURS = 2


# ── Helpers ────────────────────────────────────────────────────────────────

def _to_datetime(value: Timestamp) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        # Naive values are stored as UTC
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _resolve_now(now: Optional[Timestamp]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return _to_datetime(now)


def _count(value: Any) -> int:
    return max(0, int(value or 0))


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _reply_count(comment: Any) -> int:
    replies = _field(comment, "replies")
    if replies is not None:
        return len(replies)
    return _count(_field(comment, "reply_count", 0))


def age_hours(created_at: Timestamp, now: Optional[Timestamp] = None) -> float:
    """Hours elapsed since `created_at`, clamped at zero."""
    delta = _resolve_now(now) - _to_datetime(created_at)
    return max(0.0, delta.total_seconds() / 3600)


# ── Formulas ───────────────────────────────────────────────────────────────

def comment_hotness(
    likes_count: int,
    reply_count: int,
    created_at: Timestamp,
    now: Optional[Timestamp] = None,
) -> float:
    engagement = (
        _count(likes_count) * COMMENT_LIKE_WEIGHT
        + _count(reply_count) * COMMENT_REPLY_WEIGHT
    )
    return engagement / math.pow(age_hours(created_at, now) + AGE_OFFSET_HOURS, COMMENT_DECAY)


def post_hotness(
    likes: int,
    comments: int,
    created_at: Timestamp,
    now: Optional[Timestamp] = None,
) -> float:
    engagement = _count(likes) * POST_LIKE_WEIGHT + _count(comments) * POST_COMMENT_WEIGHT
    return engagement / math.pow(age_hours(created_at, now) + AGE_OFFSET_HOURS, POST_DECAY)


def routine_trending_score(
    saves: int,
    usage: int,
    likes: int,
    created_at: Timestamp,
    now: Optional[Timestamp] = None,
) -> float:
    """
    Trending score for a routine.

    Age is counted in whole days and floored at 1, so the decay term is at
    least ln(2) and a routine created today scores the same as one created
    yesterday.
    """
    engagement = (
        _count(saves) * ROUTINE_SAVE_WEIGHT
        + _count(usage) * ROUTINE_USAGE_WEIGHT
        + _count(likes) * ROUTINE_LIKE_WEIGHT
    )
    age_days = max(1, math.floor(age_hours(created_at, now) / 24))
    return engagement / math.log(age_days + 1)


# ── Ordering ───────────────────────────────────────────────────────────────

def sort_comments(comments: Iterable[Any], now: Optional[Timestamp] = None) -> list:
    """
    Order top-level comments for display.

    Pinned comments come first in the order they were given. The rest are
    sorted by descending comment hotness, using the length of each comment's
    `replies` list as its reply count (`reply_count` when the record has no
    replies list); equal scores keep their input order.
    The result is a permutation of the input.
    """
    ref = _resolve_now(now)
    pinned: list = []
    scored: list[tuple[float, Any]] = []

    for comment in comments:
        if _field(comment, "pinned"):
            pinned.append(comment)
            continue
        score = comment_hotness(
            _field(comment, "likes_count", 0),
            _reply_count(comment),
            _field(comment, "created_at"),
            ref,
        )
        scored.append((score, comment))

    # sort() is stable, so ties keep insertion order
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return pinned + [comment for _, comment in scored]


def rank_posts(
    posts: Sequence[Any],
    now: Optional[Timestamp] = None,
    *,
    likes_field: str = "likes_count",
    comments_field: str = "comments_count",
) -> list[tuple[Any, float]]:
    """Return (post, hotness) pairs, hottest first."""
    ref = _resolve_now(now)
    ranked = [
        (
            post,
            post_hotness(
                _field(post, likes_field, 0),
                _field(post, comments_field, 0),
                _field(post, "created_at"),
                ref,
            ),
        )
        for post in posts
    ]
    ranked.sort(key=lambda pair: pair[1], reverse=True)
    return ranked


def rank_routines(
    routines: Sequence[Any],
    now: Optional[Timestamp] = None,
) -> list[tuple[Any, float]]:
    """Return (routine, trending score) pairs, most trending first."""
    ref = _resolve_now(now)
    ranked = [
        (
            routine,
            routine_trending_score(
                _field(routine, "save_count", 0),
                _field(routine, "usage_count", 0),
                _field(routine, "like_count", 0),
                _field(routine, "created_at"),
                ref,
            ),
        )
        for routine in routines
    ]
    ranked.sort(key=lambda pair: pair[1], reverse=True)
    return ranked
