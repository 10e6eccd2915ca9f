from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime

class ChatMessage(BaseModel):
    role: str
    content: str

class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: str
    content: str
    sender: Literal["user", "assistant"]
    role: Optional[str] = None
    created_at: datetime

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1)
    message: str = Field(..., min_length=1)

class ChatResponse(BaseModel):
    message: str
    message_id: Optional[int] = Field(None, serialization_alias="messageId")
