from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.api.deps import get_coach_service, get_current_profile
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import AppError
from app.core.rate_limit import limiter
from app.schemas.chat import ChatRequest, ChatResponse, MessageRead
from app.schemas.profile import ProfileRead
from app.services.chat_service import ChatService
from app.services.coach_service import CoachService

router = APIRouter()

@router.get("/messages", response_model=List[MessageRead])
async def list_messages(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    profile: ProfileRead = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
):
    if not session_id:
        raise AppError("Session ID required", status_code=400, code="session_id_required")
    service = ChatService(db)
    await service.get_or_create_session(session_id, profile.id)
    return await service.list_messages(session_id)

@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
@limiter.limit("30/minute")
async def post_chat(
    req: ChatRequest,
    request: Request,
    profile: ProfileRead = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
    coach: CoachService = Depends(get_coach_service),
):
    api_key = request.headers.get(settings.COACH_KEY_HEADER)
    if not api_key:
        raise AppError("OpenAI API key required", status_code=400, code="api_key_required")

    turn = await ChatService(db).post_turn(profile.id, req.session_id, req.message, api_key, coach)
    return ChatResponse(message=turn.reply, message_id=turn.message_id)
