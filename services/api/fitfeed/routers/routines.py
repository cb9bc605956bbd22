"""
Routine endpoints:
  POST   /routines               — create a routine with its ordered exercises
  GET    /routines?user_id=      — a user's routines
  GET    /routines/most-used     — ordered by usage_count
  GET    /routines/most-liked    — ordered by like_count
  GET    /routines/official      — official routines, newest first
  GET    /routines/trending      — top routines by trending score
  GET    /routines/{id}          — routine detail with viewer flags
  GET    /routines/{id}/stats    — counters + viewer like/save state
  DELETE /routines/{id}          — delete (owner only)
  POST   /routines/{id}/copy     — copy into the caller's collection
  POST   /routines/{id}/like     — like / unlike toggle
  POST   /routines/{id}/save     — save / unsave toggle
  POST   /routines/{id}/use      — count a workout started from it
"""
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement, ranking
from fitfeed.config import settings
from fitfeed.database import get_db
from fitfeed.models import (
    Exercise,
    Routine,
    RoutineExercise,
    RoutineLike,
    SavedRoutine,
    User,
    Workout,
)
from fitfeed.schemas import (
    RoutineCreate,
    RoutineExerciseResponse,
    RoutineResponse,
    RoutineStats,
    RoutineSummary,
    ToggleResponse,
    TrendingRoutine,
    UserAction,
    UserSummary,
)
from fitfeed.telemetry import EXPLORE_LATENCY, RANKING_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _profiles(db: AsyncSession, user_ids: set) -> dict[str, User]:
    user_ids = {uid for uid in user_ids if uid}
    if not user_ids:
        return {}
    rows = await db.execute(select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in rows.scalars().all()}


def _summary(routine: Routine, profiles: dict[str, User]) -> RoutineSummary:
    summary = RoutineSummary.model_validate(routine)
    creator = profiles.get(routine.user_id)
    if creator:
        summary.creator = UserSummary.model_validate(creator)
    return summary


async def _summaries(db: AsyncSession, routines: Sequence[Routine]) -> list[RoutineSummary]:
    profiles = await _profiles(db, {r.user_id for r in routines})
    return [_summary(r, profiles) for r in routines]


async def _viewer_flags(db: AsyncSession, routine_id: str, viewer_id: Optional[str]) -> tuple[bool, bool]:
    if not viewer_id:
        return False, False
    liked = await db.get(RoutineLike, (routine_id, viewer_id)) is not None
    saved = await db.get(SavedRoutine, (routine_id, viewer_id)) is not None
    return liked, saved


async def _routine_detail(db: AsyncSession, routine: Routine, viewer_id: Optional[str]) -> RoutineResponse:
    exercises = await db.execute(
        select(RoutineExercise)
        .where(RoutineExercise.routine_id == routine.id)
        .order_by(RoutineExercise.order_position)
    )
    profiles = await _profiles(db, {routine.user_id, routine.original_creator_id})
    is_liked, is_saved = await _viewer_flags(db, routine.id, viewer_id)

    creator = profiles.get(routine.user_id)
    original = profiles.get(routine.original_creator_id) if routine.original_creator_id else None
    lineage_owner = routine.original_creator_id or routine.user_id

    return RoutineResponse(
        id=routine.id,
        name=routine.name,
        user_id=routine.user_id,
        original_creator_id=routine.original_creator_id,
        category=routine.category,
        save_count=routine.save_count,
        usage_count=routine.usage_count,
        like_count=routine.like_count,
        is_official=routine.is_official,
        created_at=routine.created_at,
        creator=UserSummary.model_validate(creator) if creator else None,
        original_creator=UserSummary.model_validate(original) if original else None,
        exercises=[RoutineExerciseResponse.model_validate(e) for e in exercises.scalars().all()],
        is_liked=is_liked,
        is_saved=is_saved,
        is_owner=viewer_id is not None and viewer_id == routine.user_id,
        is_original_creator=viewer_id is not None and viewer_id == lineage_owner,
    )


@router.post("/", response_model=RoutineResponse, status_code=status.HTTP_201_CREATED)
async def create_routine(body: RoutineCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_routine") as span:
        await engagement.get_or_404(db, User, body.user_id, "User")

        routine = Routine(
            name=body.name,
            user_id=body.user_id,
            category=body.category,
            is_official=body.is_official,
        )
        db.add(routine)
        await db.flush()

        for position, exercise in enumerate(body.exercises):
            db.add(
                RoutineExercise(
                    routine_id=routine.id,
                    exercise_id=exercise.exercise_id,
                    name=exercise.name,
                    order_position=position,
                    total_sets=exercise.total_sets,
                    default_weight=exercise.default_weight,
                    default_reps=exercise.default_reps,
                    default_rpe=exercise.default_rpe,
                )
            )
        await db.flush()
        await db.refresh(routine)

        span.set_attribute("routine.id", routine.id)
        logger.info("Routine created: %s by user %s", routine.id, body.user_id)
        return await _routine_detail(db, routine, body.user_id)


@router.get("/", response_model=list[RoutineSummary])
async def list_user_routines(user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Routine).where(Routine.user_id == user_id).order_by(Routine.created_at.desc())
    )
    return await _summaries(db, rows.scalars().all())


@router.get("/most-used", response_model=list[RoutineSummary])
async def most_used_routines(
    limit: int = Query(settings.routine_list_limit, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Routine).order_by(Routine.usage_count.desc(), Routine.created_at.desc()).limit(limit)
    )
    return await _summaries(db, rows.scalars().all())


@router.get("/most-liked", response_model=list[RoutineSummary])
async def most_liked_routines(
    limit: int = Query(settings.routine_list_limit, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Routine).order_by(Routine.like_count.desc(), Routine.created_at.desc()).limit(limit)
    )
    return await _summaries(db, rows.scalars().all())


@router.get("/official", response_model=list[RoutineSummary])
async def official_routines(
    limit: int = Query(settings.routine_list_limit, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Routine)
        .where(Routine.is_official.is_(True))
        .order_by(Routine.created_at.desc())
        .limit(limit)
    )
    return await _summaries(db, rows.scalars().all())


@router.get("/trending", response_model=list[TrendingRoutine])
async def trending_routines(
    limit: int = Query(settings.trending_routine_top, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """
    Score a bounded pool of routines that have been saved at least once
    and return the top `limit`, each with its exercise names and the muscle
    groups those exercises train.
    """
    start_time = time.time()
    with tracer.start_as_current_span("trending_routines") as span:
        rows = await db.execute(
            select(Routine).where(Routine.save_count > 0).limit(settings.trending_routine_pool)
        )
        pool = rows.scalars().all()
        span.set_attribute("trending.pool_size", len(pool))

        with RANKING_LATENCY.labels(kind="routines").time():
            top = ranking.rank_routines(pool, datetime.now(timezone.utc))[:limit]
        if not top:
            return []

        routine_ids = [r.id for r, _ in top]
        exercise_rows = await db.execute(
            select(RoutineExercise, Exercise)
            .outerjoin(Exercise, RoutineExercise.exercise_id == Exercise.id)
            .where(RoutineExercise.routine_id.in_(routine_ids))
            .order_by(RoutineExercise.order_position)
        )
        names: dict[str, list[str]] = defaultdict(list)
        muscles: dict[str, list[str]] = defaultdict(list)
        for routine_exercise, exercise in exercise_rows.all():
            rid = routine_exercise.routine_id
            names[rid].append(routine_exercise.name)
            if exercise is None:
                continue
            groups = [exercise.primary_muscle_group] + list(exercise.secondary_muscle_groups or [])
            for group in groups:
                if group and group not in muscles[rid]:
                    muscles[rid].append(group)

        profiles = await _profiles(db, {r.user_id for r, _ in top})
        result = []
        for routine, score in top:
            summary = _summary(routine, profiles)
            result.append(
                TrendingRoutine(
                    **summary.model_dump(),
                    exercise_count=len(names[routine.id]),
                    exercises=names[routine.id],
                    muscle_groups=muscles[routine.id],
                    trending_score=round(score, 4),
                )
            )

    EXPLORE_LATENCY.labels(page="trending_routines").observe(time.time() - start_time)
    return result


@router.get("/{routine_id}", response_model=RoutineResponse)
async def get_routine(
    routine_id: str,
    viewer_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    routine = await engagement.get_or_404(db, Routine, routine_id, "Routine")
    return await _routine_detail(db, routine, viewer_id)


@router.get("/{routine_id}/stats", response_model=RoutineStats)
async def routine_stats(
    routine_id: str,
    viewer_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    routine = await engagement.get_or_404(db, Routine, routine_id, "Routine")
    is_liked, is_saved = await _viewer_flags(db, routine_id, viewer_id)
    return RoutineStats(
        save_count=routine.save_count or 0,
        usage_count=routine.usage_count or 0,
        like_count=routine.like_count or 0,
        is_liked=is_liked,
        is_saved=is_saved,
    )


@router.delete("/{routine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_routine(
    routine_id: str,
    user_id: str = Query(..., description="Requesting user"),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("delete_routine"):
        routine = await engagement.get_or_404(db, Routine, routine_id, "Routine")
        if routine.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only delete your own routines",
            )

        await db.execute(delete(RoutineExercise).where(RoutineExercise.routine_id == routine_id))
        await db.execute(delete(RoutineLike).where(RoutineLike.routine_id == routine_id))
        await db.execute(delete(SavedRoutine).where(SavedRoutine.routine_id == routine_id))
        await db.execute(
            update(Workout).where(Workout.routine_id == routine_id).values(routine_id=None)
        )
        await db.delete(routine)
        await db.flush()
        logger.info("Routine deleted: %s by user %s", routine_id, user_id)


@router.post("/{routine_id}/copy", response_model=RoutineResponse, status_code=status.HTTP_201_CREATED)
async def copy_routine(routine_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    """
    Copy a routine into the caller's collection. The copier owns the copy
    and becomes its original creator; counters start from zero.
    """
    with tracer.start_as_current_span("copy_routine"):
        source = await engagement.get_or_404(db, Routine, routine_id, "Routine")
        await engagement.get_or_404(db, User, body.user_id, "User")

        copy = Routine(
            name=f"{source.name} (Copy)",
            user_id=body.user_id,
            category=source.category,
            original_creator_id=body.user_id,
        )
        db.add(copy)
        await db.flush()

        exercises = await db.execute(
            select(RoutineExercise)
            .where(RoutineExercise.routine_id == routine_id)
            .order_by(RoutineExercise.order_position)
        )
        for exercise in exercises.scalars().all():
            db.add(
                RoutineExercise(
                    routine_id=copy.id,
                    exercise_id=exercise.exercise_id,
                    name=exercise.name,
                    order_position=exercise.order_position,
                    total_sets=exercise.total_sets,
                    default_weight=exercise.default_weight,
                    default_reps=exercise.default_reps,
                    default_rpe=exercise.default_rpe,
                )
            )
        await db.flush()
        await db.refresh(copy)

        logger.info("Routine %s copied to %s by %s", routine_id, copy.id, body.user_id)
        return await _routine_detail(db, copy, body.user_id)


@router.post("/{routine_id}/like", response_model=ToggleResponse)
async def like_routine(routine_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    liked, count = await engagement.toggle_routine_like(db, routine_id, body.user_id)
    return ToggleResponse(active=liked, count=count)


@router.post("/{routine_id}/save", response_model=ToggleResponse)
async def save_routine(routine_id: str, body: UserAction, db: AsyncSession = Depends(get_db)):
    saved, count = await engagement.toggle_routine_save(db, routine_id, body.user_id)
    return ToggleResponse(active=saved, count=count)


@router.post("/{routine_id}/use", response_model=ToggleResponse)
async def use_routine(routine_id: str, db: AsyncSession = Depends(get_db)):
    count = await engagement.record_routine_use(db, routine_id)
    return ToggleResponse(active=True, count=count)
