"""
Exercise library endpoints:
  POST /exercises                 — create a custom exercise for a user
  GET  /exercises?user_id=&q=     — library plus the user's custom exercises
  GET  /exercises/{id}            — one exercise

Library rows have no owner; custom rows are only listed for their owner.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitfeed import engagement
from fitfeed.database import get_db
from fitfeed.models import Exercise, User
from fitfeed.schemas import ExerciseCreate, ExerciseResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _exercise_response(exercise: Exercise) -> ExerciseResponse:
    response = ExerciseResponse.model_validate(exercise)
    response.is_custom = exercise.user_id is not None
    return response


@router.post("/", response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise(body: ExerciseCreate, db: AsyncSession = Depends(get_db)):
    await engagement.get_or_404(db, User, body.user_id, "User")

    duplicate = await db.scalar(
        select(Exercise.id).where(
            Exercise.user_id == body.user_id,
            func.lower(Exercise.name) == body.name.lower(),
        )
    )
    if duplicate:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"You already have an exercise named '{body.name}'",
        )

    exercise = Exercise(
        name=body.name,
        primary_muscle_group=body.primary_muscle_group,
        secondary_muscle_groups=body.secondary_muscle_groups,
        equipment=body.equipment,
        user_id=body.user_id,
    )
    db.add(exercise)
    await db.flush()
    await db.refresh(exercise)

    logger.info("Custom exercise %s created by %s", exercise.id, body.user_id)
    return _exercise_response(exercise)


@router.get("/", response_model=list[ExerciseResponse])
async def list_exercises(
    user_id: Optional[str] = Query(None, description="Include this user's custom exercises"),
    q: Optional[str] = Query(None, min_length=1),
    muscle_group: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    visible = Exercise.user_id.is_(None)
    if user_id:
        visible = or_(visible, Exercise.user_id == user_id)

    stmt = select(Exercise).where(visible)
    if q:
        stmt = stmt.where(Exercise.name.ilike(f"%{q}%"))
    if muscle_group:
        stmt = stmt.where(Exercise.primary_muscle_group == muscle_group)

    rows = await db.execute(stmt.order_by(Exercise.name))
    return [_exercise_response(e) for e in rows.scalars().all()]


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(exercise_id: str, db: AsyncSession = Depends(get_db)):
    exercise = await engagement.get_or_404(db, Exercise, exercise_id, "Exercise")
    return _exercise_response(exercise)
