import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AggregationError
from app.models.goal import Goal, Step
from app.schemas.goal import GoalCreate

logger = logging.getLogger(__name__)

GOAL_RECOMPUTE_WARNING = "Step saved, but goal progress could not be updated"


def compute_progress(completed: int, total: int) -> Optional[int]:
    """Percentage of completed steps, rounded half up. ``None`` when there are no steps."""
    if total <= 0:
        return None
    return (200 * completed + total) // (2 * total)


def derive_status(progress: int) -> str:
    # Never "paused": that status is only ever set by the user.
    return "completed" if progress == 100 else "active"


@dataclass
class StepToggleResult:
    step: Step
    goal: Optional[Goal] = None
    goal_error: Optional[str] = None


class GoalProgressAggregator:
    """Keeps goal progress and status derived from the goal's steps.

    The step write and the goal recompute are separate commits. Two contexts
    toggling steps of the same goal at once can race on the recompute and the
    last writer wins; nothing here locks the goal's step set.
    """

    def __init__(self, db: AsyncSession, default_steps: Optional[Sequence[str]] = None):
        self.db = db
        self.default_steps = list(default_steps if default_steps is not None else settings.DEFAULT_GOAL_STEPS)

    async def list_goals(self, owner_id: str) -> List[Goal]:
        result = await self.db.execute(
            select(Goal).where(Goal.user_id == owner_id).order_by(Goal.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_goal(self, owner_id: str, req: GoalCreate) -> Goal:
        logger.info("Creating goal for user %s", owner_id)
        goal = Goal(
            user_id=owner_id,
            title=req.title,
            description=req.description or None,
            category=req.category,
            deadline=req.deadline,
            status="active",
            progress=0,
        )
        goal.steps = [Step(title=title, completed=False, seq=i) for i, title in enumerate(self.default_steps)]
        self.db.add(goal)
        await self.db.commit()
        return goal

    async def toggle_step(self, step_id: str, completed: bool, owner_id: Optional[str] = None) -> StepToggleResult:
        step = await self._find_step(step_id, owner_id)
        if step is None:
            raise AggregationError(AggregationError.STEP_NOT_FOUND, "Step not found")

        logger.info("Updating step %s completed=%s", step_id, completed)
        step.completed = completed
        step.updated_at = datetime.utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Error updating step %s: %s", step_id, exc)
            raise AggregationError(AggregationError.STEP_UPDATE_FAILED, "Could not update step") from exc

        # The step write stands from here on; recompute failures are reported, not rolled back.
        try:
            goal = await self._recompute_goal(step.goal_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Error updating goal progress for %s: %s", step.goal_id, exc)
            return StepToggleResult(step=step, goal=None, goal_error=GOAL_RECOMPUTE_WARNING)
        return StepToggleResult(step=step, goal=goal)

    async def _find_step(self, step_id: str, owner_id: Optional[str]) -> Optional[Step]:
        stmt = select(Step).where(Step.id == step_id)
        if owner_id is not None:
            stmt = stmt.join(Goal, Step.goal_id == Goal.id).where(Goal.user_id == owner_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _recompute_goal(self, goal_id: str) -> Optional[Goal]:
        result = await self.db.execute(
            select(Goal).where(Goal.id == goal_id).execution_options(populate_existing=True)
        )
        goal = result.scalar_one_or_none()
        if goal is None:
            return None

        total = len(goal.steps)
        progress = compute_progress(sum(1 for s in goal.steps if s.completed), total)
        if progress is None:
            # No steps: keep whatever progress and status the goal already has.
            return goal

        goal.progress = progress
        goal.status = derive_status(progress)
        goal.updated_at = datetime.utcnow()
        await self.db.commit()
        return goal
