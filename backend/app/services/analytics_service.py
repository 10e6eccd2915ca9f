from datetime import datetime
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat import ChatSession, Message
from app.models.goal import Goal, GOAL_STATUSES
from app.schemas.analytics import Analytics, RecentGoalActivity

UNCATEGORIZED = "Other"
RECENT_ACTIVITY_LIMIT = 10


def summarize_goals(goals: List[Goal]) -> Dict:
    """Goal/step aggregates, recomputed from scratch on every read."""
    by_status = {status: 0 for status in GOAL_STATUSES}
    by_category: Dict[str, int] = {}
    total_steps = completed_steps = 0

    for goal in goals:
        by_status[goal.status] = by_status.get(goal.status, 0) + 1
        category = goal.category or UNCATEGORIZED
        by_category[category] = by_category.get(category, 0) + 1
        total_steps += len(goal.steps)
        completed_steps += sum(1 for s in goal.steps if s.completed)

    avg_progress = 0
    if goals:
        total = sum(g.progress for g in goals)
        avg_progress = (2 * total + len(goals)) // (2 * len(goals))

    recent = sorted(goals, key=lambda g: g.updated_at or datetime.min, reverse=True)[:RECENT_ACTIVITY_LIMIT]
    return {
        "total_goals": len(goals),
        "completed_goals": by_status["completed"],
        "active_goals": by_status["active"],
        "total_steps": total_steps,
        "completed_steps": completed_steps,
        "avg_progress": avg_progress,
        "goals_by_category": by_category,
        "goals_by_status": by_status,
        "recent_activity": [
            RecentGoalActivity(
                id=g.id,
                title=g.title,
                status=g.status,
                progress=g.progress,
                updated_at=g.updated_at,
                steps_completed=sum(1 for s in g.steps if s.completed),
                total_steps=len(g.steps),
            )
            for g in recent
        ],
    }


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def for_owner(self, owner_id: str) -> Analytics:
        session_ids = select(ChatSession.id).where(ChatSession.user_id == owner_id)
        total_sessions = await self.db.scalar(
            select(func.count()).select_from(ChatSession).where(ChatSession.user_id == owner_id)
        )
        total_messages = await self.db.scalar(
            select(func.count()).select_from(Message).where(Message.session_id.in_(session_ids))
        )
        result = await self.db.execute(select(Goal).where(Goal.user_id == owner_id))
        goals = list(result.scalars().all())

        return Analytics(
            total_sessions=total_sessions or 0,
            total_messages=total_messages or 0,
            **summarize_goals(goals),
        )
