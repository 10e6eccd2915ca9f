from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class Identity(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: str
    email_confirmed_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: datetime
    identity: Identity

class PendingConfirmation(BaseModel):
    """Sign-up accepted; the identity must confirm its email before signing in."""

    model_config = ConfigDict(frozen=True)

    identity: Identity

class Credentials(BaseModel):
    email: str
    password: str

class SessionResponse(BaseModel):
    session: Optional[Session] = None
    needs_confirmation: bool = False
    identity: Optional[Identity] = None
