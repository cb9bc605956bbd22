"""
Workout log endpoints:
  POST /workouts              — save a finished workout with its exercises and sets
  GET  /workouts?user_id=     — a user's workouts, most recent first
  GET  /workouts/{id}         — one workout with exercises and sets

A workout started from a routine counts as one use of that routine.
Set weights arrive in the client's unit and are stored in kg.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement
from fitfeed.database import get_db
from fitfeed.models import Exercise, Routine, User, Workout, WorkoutExercise, WorkoutSet
from fitfeed.schemas import (
    WorkoutCreate,
    WorkoutExerciseResponse,
    WorkoutResponse,
    WorkoutSetResponse,
    WorkoutSummary,
)

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

KG_PER_LB = 0.45359237


def to_kg(weight: Optional[float], unit: str) -> Optional[float]:
    if weight is None:
        return None
    if unit == "lbs":
        return round(weight * KG_PER_LB, 3)
    return weight


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _load_exercises(db: AsyncSession, workout_ids: list[str]):
    """Exercises grouped by workout, and sets grouped by workout exercise."""
    rows = await db.execute(
        select(WorkoutExercise)
        .where(WorkoutExercise.workout_id.in_(workout_ids))
        .order_by(WorkoutExercise.order_position)
    )
    exercises = rows.scalars().all()

    sets_by_exercise: dict[str, list[WorkoutSet]] = defaultdict(list)
    if exercises:
        set_rows = await db.execute(
            select(WorkoutSet)
            .where(WorkoutSet.workout_exercise_id.in_([e.id for e in exercises]))
            .order_by(WorkoutSet.order_index)
        )
        for workout_set in set_rows.scalars().all():
            sets_by_exercise[workout_set.workout_exercise_id].append(workout_set)

    by_workout: dict[str, list[WorkoutExercise]] = defaultdict(list)
    for exercise in exercises:
        by_workout[exercise.workout_id].append(exercise)
    return by_workout, sets_by_exercise


async def _workout_detail(db: AsyncSession, workout: Workout) -> WorkoutResponse:
    by_workout, sets_by_exercise = await _load_exercises(db, [workout.id])
    return WorkoutResponse(
        id=workout.id,
        user_id=workout.user_id,
        name=workout.name,
        start_time=workout.start_time,
        end_time=workout.end_time,
        duration=workout.duration,
        notes=workout.notes,
        routine_id=workout.routine_id,
        created_at=workout.created_at,
        exercises=[
            WorkoutExerciseResponse(
                id=e.id,
                exercise_id=e.exercise_id,
                name=e.name,
                notes=e.notes,
                superset_id=e.superset_id,
                order_position=e.order_position,
                sets=[WorkoutSetResponse.model_validate(s) for s in sets_by_exercise[e.id]],
            )
            for e in by_workout[workout.id]
        ],
    )


@router.post("/", response_model=WorkoutResponse, status_code=status.HTTP_201_CREATED)
async def create_workout(body: WorkoutCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_workout") as span:
        await engagement.get_or_404(db, User, body.user_id, "User")
        if body.routine_id:
            await engagement.get_or_404(db, Routine, body.routine_id, "Routine")
        for item in body.exercises:
            if item.exercise_id:
                await engagement.get_or_404(db, Exercise, item.exercise_id, "Exercise")

        workout = Workout(
            user_id=body.user_id,
            name=body.name,
            start_time=_naive_utc(body.start_time),
            end_time=_naive_utc(body.end_time),
            duration=body.duration,
            notes=body.notes,
            routine_id=body.routine_id,
        )
        db.add(workout)
        await db.flush()

        for position, item in enumerate(body.exercises):
            performed = WorkoutExercise(
                workout_id=workout.id,
                exercise_id=item.exercise_id,
                name=item.name,
                notes=item.notes,
                superset_id=item.superset_id,
                order_position=position,
            )
            db.add(performed)
            await db.flush()
            for index, workout_set in enumerate(item.sets):
                db.add(
                    WorkoutSet(
                        workout_exercise_id=performed.id,
                        weight=to_kg(workout_set.weight, body.weight_unit),
                        reps=workout_set.reps,
                        rpe=workout_set.rpe,
                        is_completed=workout_set.is_completed,
                        order_index=index,
                    )
                )
        await db.flush()
        await db.refresh(workout)

        if body.routine_id:
            await engagement.record_routine_use(db, body.routine_id)

        span.set_attribute("workout.id", workout.id)
        logger.info("Workout %s saved by %s", workout.id, body.user_id)
        return await _workout_detail(db, workout)


@router.get("/", response_model=list[WorkoutSummary])
async def list_workouts(
    user_id: str = Query(...),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Workout)
        .where(Workout.user_id == user_id)
        .order_by(Workout.start_time.desc())
        .offset(offset)
        .limit(limit)
    )
    workouts = rows.scalars().all()
    if not workouts:
        return []

    by_workout, sets_by_exercise = await _load_exercises(db, [w.id for w in workouts])
    summaries = []
    for workout in workouts:
        exercises = by_workout[workout.id]
        volume = sum(
            (s.weight or 0) * (s.reps or 0)
            for e in exercises
            for s in sets_by_exercise[e.id]
            if s.is_completed
        )
        summaries.append(
            WorkoutSummary(
                id=workout.id,
                name=workout.name,
                start_time=workout.start_time,
                duration=workout.duration,
                routine_id=workout.routine_id,
                exercise_count=len(exercises),
                total_volume=round(volume, 2),
            )
        )
    return summaries


@router.get("/{workout_id}", response_model=WorkoutResponse)
async def get_workout(workout_id: str, db: AsyncSession = Depends(get_db)):
    workout = await engagement.get_or_404(db, Workout, workout_id, "Workout")
    return await _workout_detail(db, workout)
