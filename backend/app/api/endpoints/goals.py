from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from app.api.deps import get_current_profile
from app.core.database import get_db
from app.schemas.goal import GoalCreate, GoalRead, StepToggleRequest, StepToggleResponse, StepRead
from app.schemas.profile import ProfileRead
from app.services.goal_service import GoalProgressAggregator

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/goals", response_model=List[GoalRead])
async def list_goals(profile: ProfileRead = Depends(get_current_profile), db: AsyncSession = Depends(get_db)):
    goals = await GoalProgressAggregator(db).list_goals(profile.id)
    logger.info("Fetched %d goals for user %s", len(goals), profile.id)
    return goals

@router.post("/goals", response_model=GoalRead)
async def create_goal(req: GoalCreate, profile: ProfileRead = Depends(get_current_profile), db: AsyncSession = Depends(get_db)):
    return await GoalProgressAggregator(db).create_goal(profile.id, req)

@router.patch("/steps/{step_id}", response_model=StepToggleResponse)
async def toggle_step(step_id: str, req: StepToggleRequest, profile: ProfileRead = Depends(get_current_profile), db: AsyncSession = Depends(get_db)):
    result = await GoalProgressAggregator(db).toggle_step(step_id, req.completed, owner_id=profile.id)
    return StepToggleResponse(
        step=StepRead.model_validate(result.step),
        goal=GoalRead.model_validate(result.goal) if result.goal is not None else None,
        warning=result.goal_error,
    )
