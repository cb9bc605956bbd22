"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    username: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(UserSummary):
    bio: Optional[str] = None
    followers_count: int
    following_count: int
    posts_count: int
    created_at: datetime
    is_following: bool = False


class FollowRequest(BaseModel):
    follower_id: str
    following_id: str


class SuggestedUser(UserSummary):
    follower_count: int


# ──────────────────────────── Posts ───────────────────────────────────────

class MediaUpload(BaseModel):
    # Base64-encoded payload, stored in MinIO
    data_base64: str
    media_type: str = Field("image", pattern="^(image|video)$")
    ext: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


class PostCreate(BaseModel):
    user_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    workout_id: Optional[str] = None
    media: list[MediaUpload] = []


class PostUpdate(BaseModel):
    user_id: str
    description: Optional[str] = None
    media_to_delete: list[str] = []


class MediaAdd(BaseModel):
    user_id: str
    media: list[MediaUpload]


class MediaResponse(BaseModel):
    id: str
    type: str
    uri: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    order_index: int


class PostResponse(BaseModel):
    id: str
    user: Optional[UserSummary]
    title: Optional[str]
    text: Optional[str]
    workout_id: Optional[str]
    created_at: datetime
    media: list[MediaResponse]
    likes: int
    comments_count: int = 0
    is_liked: bool = False
    hotness_score: Optional[float] = None


class UserAction(BaseModel):
    """Body of toggle / owner-checked actions: who is acting."""
    user_id: str


class LikeToggleResponse(BaseModel):
    liked: bool
    likes_count: int


# ──────────────────────────── Comments ────────────────────────────────────

class CommentCreate(BaseModel):
    user_id: str
    text: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class CommentUpdate(BaseModel):
    user_id: str
    text: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: str
    post_id: str
    user_id: str
    text: str
    parent_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    likes_count: int = 0
    pinned: bool = False
    is_liked: bool = False
    user: Optional[UserSummary] = None
    replies: list["CommentResponse"] = []


# ──────────────────────────── Routines ────────────────────────────────────

class RoutineExerciseIn(BaseModel):
    name: str
    exercise_id: Optional[str] = None
    total_sets: Optional[int] = None
    default_weight: Optional[float] = None
    default_reps: Optional[int] = None
    default_rpe: Optional[float] = None


class RoutineCreate(BaseModel):
    user_id: str
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = None
    is_official: bool = False
    exercises: list[RoutineExerciseIn] = []


class RoutineExerciseResponse(BaseModel):
    id: str
    exercise_id: Optional[str] = None
    name: str
    order_position: int
    total_sets: Optional[int] = None
    default_weight: Optional[float] = None
    default_reps: Optional[int] = None
    default_rpe: Optional[float] = None

    class Config:
        from_attributes = True


class RoutineStats(BaseModel):
    save_count: int
    usage_count: int
    like_count: int
    is_liked: bool = False
    is_saved: bool = False


class RoutineResponse(BaseModel):
    id: str
    name: str
    user_id: str
    original_creator_id: Optional[str] = None
    category: Optional[str] = None
    save_count: int
    usage_count: int
    like_count: int
    is_official: bool
    created_at: datetime
    creator: Optional[UserSummary] = None
    original_creator: Optional[UserSummary] = None
    exercises: list[RoutineExerciseResponse] = []
    is_liked: bool = False
    is_saved: bool = False
    is_owner: bool = False
    is_original_creator: bool = False


class RoutineSummary(BaseModel):
    id: str
    name: str
    user_id: str
    original_creator_id: Optional[str] = None
    save_count: int
    usage_count: int
    like_count: int
    is_official: bool
    created_at: datetime
    creator: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class TrendingRoutine(RoutineSummary):
    exercise_count: int
    exercises: list[str]
    muscle_groups: list[str]
    trending_score: float


class ToggleResponse(BaseModel):
    active: bool
    count: int


# ──────────────────────────── Exercises ───────────────────────────────────

class ExerciseCreate(BaseModel):
    user_id: str
    name: str = Field(..., min_length=1, max_length=255)
    primary_muscle_group: Optional[str] = None
    secondary_muscle_groups: list[str] = []
    equipment: Optional[str] = None


class ExerciseResponse(BaseModel):
    id: str
    name: str
    primary_muscle_group: Optional[str] = None
    secondary_muscle_groups: Optional[list[str]] = None
    equipment: Optional[str] = None
    user_id: Optional[str] = None
    is_custom: bool = False

    class Config:
        from_attributes = True


# ──────────────────────────── Workouts ────────────────────────────────────

class WorkoutSetIn(BaseModel):
    weight: Optional[float] = Field(None, ge=0)
    reps: Optional[int] = Field(None, ge=0)
    rpe: Optional[float] = Field(None, ge=0, le=10)
    is_completed: bool = False


class WorkoutExerciseIn(BaseModel):
    name: str
    exercise_id: Optional[str] = None
    notes: Optional[str] = None
    superset_id: Optional[str] = None
    sets: list[WorkoutSetIn] = []


class WorkoutCreate(BaseModel):
    user_id: str
    name: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    routine_id: Optional[str] = None
    # Unit of the set weights in this request; stored as kg
    weight_unit: Literal["kg", "lbs"] = "kg"
    exercises: list[WorkoutExerciseIn] = []


class WorkoutSetResponse(BaseModel):
    id: str
    weight: Optional[float] = None
    reps: Optional[int] = None
    rpe: Optional[float] = None
    is_completed: bool
    order_index: int

    class Config:
        from_attributes = True


class WorkoutExerciseResponse(BaseModel):
    id: str
    exercise_id: Optional[str] = None
    name: str
    notes: Optional[str] = None
    superset_id: Optional[str] = None
    order_position: int
    sets: list[WorkoutSetResponse] = []


class WorkoutResponse(BaseModel):
    id: str
    user_id: str
    name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    routine_id: Optional[str] = None
    created_at: datetime
    exercises: list[WorkoutExerciseResponse] = []


class WorkoutSummary(BaseModel):
    id: str
    name: str
    start_time: datetime
    duration: Optional[int] = None
    routine_id: Optional[str] = None
    exercise_count: int = 0
    total_volume: float = 0.0  # kg lifted over completed sets


# ──────────────────────────── Explore ─────────────────────────────────────

class PostPage(BaseModel):
    posts: list[PostResponse]
    offset: int
    limit: int
    has_more: bool


class RecentSearch(BaseModel):
    type: Literal["user", "query", "club", "routine"] = "query"
    query: str = Field(..., min_length=1)
    target_id: Optional[str] = None


class RecentSearchCreate(RecentSearch):
    user_id: str


# ──────────────────────────── Notifications ───────────────────────────────

class NotificationResponse(BaseModel):
    id: str
    recipient_id: str
    actor_id: str
    type: str
    post_id: Optional[str] = None
    routine_id: Optional[str] = None
    comment_id: Optional[str] = None
    read: bool
    created_at: datetime
    actor: Optional[UserSummary] = None


class NotificationList(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


# ──────────────────────────── Ranking ─────────────────────────────────────

class CommentCandidate(BaseModel):
    id: str
    likes_count: int = Field(0, ge=0)
    reply_count: int = Field(0, ge=0)
    created_at: datetime
    pinned: bool = False


class PostCandidate(BaseModel):
    id: str
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    created_at: datetime


class RoutineCandidate(BaseModel):
    id: str
    save_count: int = Field(0, ge=0)
    usage_count: int = Field(0, ge=0)
    like_count: int = Field(0, ge=0)
    created_at: datetime


class CommentRankRequest(BaseModel):
    now: Optional[datetime] = None
    candidates: list[CommentCandidate] = []


class PostRankRequest(BaseModel):
    now: Optional[datetime] = None
    candidates: list[PostCandidate] = []


class RoutineRankRequest(BaseModel):
    now: Optional[datetime] = None
    candidates: list[RoutineCandidate] = []


class ScoredItem(BaseModel):
    id: str
    score: Optional[float]  # None for pinned comments
    pinned: bool = False


class RankResponse(BaseModel):
    kind: str
    scores: list[ScoredItem]
