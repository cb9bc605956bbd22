"""
SQLAlchemy ORM models.

Tables:
  profiles          — user profiles + denormalized follower/following/post counts
  follows           — social graph edges (follower → following)
  posts             — post metadata (media bytes stored in MinIO)
  post_media        — ordered media attachments of a post
  post_likes        — user × post engagement
  post_comments     — comments; replies carry parent_id (one level deep)
  comment_likes     — user × comment engagement
  exercises         — exercise library + per-user custom exercises
  workouts          — logged workout sessions (optionally from a routine)
  workout_exercises — ordered exercises performed in a workout
  workout_sets      — sets of a workout exercise (weights in kg)
  routines          — workout routines + usage/save/like counters
  routine_exercises — ordered exercise list of a routine
  routine_likes     — user × routine engagement
  saved_routines    — user × routine bookmarks
  notifications     — in-app notification records

Edge tables use composite primary keys so a duplicate like/save/follow
cannot be inserted twice.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from fitfeed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the form the DATETIME columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )


class User(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    bio: Mapped[Optional[str]] = mapped_column(Text)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    followers_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    following_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    posts_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = _created_at()


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    following_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (
        # "who follows user X?": followers list and suggestion counts
        Index("idx_follows_following", "following_id"),
    )


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    title: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    workout_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("workouts.id"))
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
    )


class PostMedia(Base):
    __tablename__ = "post_media"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id"), nullable=False
    )
    # Object key inside the bucket, or an absolute URL for external media
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    media_type: Mapped[str] = mapped_column(String(20), nullable=False)  # image | video
    width: Mapped[Optional[int]] = mapped_column(Integer)
    height: Mapped[Optional[int]] = mapped_column(Integer)
    duration: Mapped[Optional[float]] = mapped_column(Float)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("idx_post_media_post", "post_id"),)


class PostLike(Base):
    __tablename__ = "post_likes"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    created_at: Mapped[datetime] = _created_at()


class Comment(Base):
    __tablename__ = "post_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("post_comments.id")
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_comments_post", "post_id"),
        Index("idx_comments_parent", "parent_id"),
    )


class CommentLike(Base):
    __tablename__ = "comment_likes"

    comment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post_comments.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    created_at: Mapped[datetime] = _created_at()


class Exercise(Base):
    __tablename__ = "exercises"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_muscle_group: Mapped[Optional[str]] = mapped_column(String(100))
    secondary_muscle_groups: Mapped[Optional[list]] = mapped_column(JSON)
    equipment: Mapped[Optional[str]] = mapped_column(String(100))
    # Set for custom exercises; None for the shared library
    user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("profiles.id"))
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (Index("idx_exercises_user", "user_id"),)


class Workout(Base):
    __tablename__ = "workouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    duration: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    notes: Mapped[Optional[str]] = mapped_column(Text)
    routine_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("routines.id"))
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (Index("idx_workouts_user", "user_id", "start_time"),)


class WorkoutExercise(Base):
    __tablename__ = "workout_exercises"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    workout_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workouts.id"), nullable=False
    )
    exercise_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("exercises.id")
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    superset_id: Mapped[Optional[str]] = mapped_column(String(36))
    order_position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("idx_workout_exercises_workout", "workout_id"),)


class WorkoutSet(Base):
    __tablename__ = "workout_sets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    workout_exercise_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workout_exercises.id"), nullable=False
    )
    weight: Mapped[Optional[float]] = mapped_column(Float)  # always kg
    reps: Mapped[Optional[int]] = mapped_column(Integer)
    rpe: Mapped[Optional[float]] = mapped_column(Float)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("idx_workout_sets_exercise", "workout_exercise_id"),)


class Routine(Base):
    __tablename__ = "routines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    # Lineage of copies; None means the owner created it
    original_creator_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("profiles.id")
    )
    category: Mapped[Optional[str]] = mapped_column(String(100))
    save_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_official: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (Index("idx_routines_user", "user_id"),)


class RoutineExercise(Base):
    __tablename__ = "routine_exercises"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    routine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("routines.id"), nullable=False
    )
    exercise_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("exercises.id")
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    order_position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_sets: Mapped[Optional[int]] = mapped_column(Integer)
    default_weight: Mapped[Optional[float]] = mapped_column(Float)
    default_reps: Mapped[Optional[int]] = mapped_column(Integer)
    default_rpe: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (Index("idx_routine_exercises_routine", "routine_id"),)


class RoutineLike(Base):
    __tablename__ = "routine_likes"

    routine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("routines.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    created_at: Mapped[datetime] = _created_at()


class SavedRoutine(Base):
    __tablename__ = "saved_routines"

    routine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("routines.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), primary_key=True
    )
    created_at: Mapped[datetime] = _created_at()


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    actor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id"), nullable=False
    )
    # post_like | follow | routine_like | routine_save | comment_like
    # | comment_reply | post_comment
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    post_id: Mapped[Optional[str]] = mapped_column(String(36))
    routine_id: Mapped[Optional[str]] = mapped_column(String(36))
    comment_id: Mapped[Optional[str]] = mapped_column(String(36))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (Index("idx_notifications_recipient", "recipient_id", "created_at"),)
