from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime

class RecentGoalActivity(BaseModel):
    id: str
    title: str
    status: str
    progress: int
    updated_at: Optional[datetime] = None
    steps_completed: int
    total_steps: int

class Analytics(BaseModel):
    total_sessions: int = 0
    total_messages: int = 0
    total_goals: int = 0
    completed_goals: int = 0
    active_goals: int = 0
    total_steps: int = 0
    completed_steps: int = 0
    avg_progress: int = 0
    goals_by_category: Dict[str, int] = {}
    goals_by_status: Dict[str, int] = {}
    recent_activity: List[RecentGoalActivity] = []
