from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime

GoalStatus = Literal["active", "completed", "paused"]

class StepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    goal_id: str
    title: str
    completed: bool
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=5000)
    description: Optional[str] = None
    category: str = ""
    deadline: Optional[datetime] = None

class GoalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category: str
    status: GoalStatus
    progress: int
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    steps: List[StepRead] = []

class StepToggleRequest(BaseModel):
    completed: bool

class StepToggleResponse(BaseModel):
    step: StepRead
    goal: Optional[GoalRead] = None
    warning: Optional[str] = None
