from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    onboarding_completed: bool = False
    focus_area: Optional[str] = None
    income_goal: Optional[int] = None
    target_deadline: Optional[datetime] = None
    obstacles: Optional[List[str]] = None
    created_at: Optional[datetime] = None

class ProfileUpdate(BaseModel):
    """Partial patch; only fields explicitly sent are applied."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    onboarding_completed: Optional[bool] = None
    focus_area: Optional[str] = None
    income_goal: Optional[int] = None
    target_deadline: Optional[datetime] = None
    obstacles: Optional[List[str]] = None

    @field_validator("onboarding_completed")
    @classmethod
    def onboarding_completed_not_null(cls, value: Optional[bool]) -> Optional[bool]:
        # Omitting the field leaves it alone; an explicit null is not a value.
        if value is None:
            raise ValueError("onboarding_completed cannot be null")
        return value
