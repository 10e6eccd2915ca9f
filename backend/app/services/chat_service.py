import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFoundError
from app.models.chat import ChatSession, Message
from app.models.goal import Goal
from app.services.coach_service import CoachService

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "Chat Session"


@dataclass
class ChatTurn:
    reply: str
    message_id: Optional[int]


class ChatService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create_session(self, session_id: str, owner_id: str) -> ChatSession:
        """Chat sessions are created on first reference by a client-chosen id."""
        session = await self._owned_session(session_id, owner_id)
        if session is not None:
            return session

        if await self.db.get(ChatSession, session_id) is not None:
            # Id taken by another owner.
            raise NotFoundError("Chat session not found")

        logger.info("Creating new chat session %s", session_id)
        session = ChatSession(id=session_id, user_id=owner_id, title=DEFAULT_SESSION_TITLE)
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            session = await self._owned_session(session_id, owner_id)
            if session is None:
                raise NotFoundError("Chat session not found")
        return session

    async def list_messages(self, session_id: str) -> List[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def recent_messages(self, session_id: str, limit: int) -> List[Message]:
        """The last ``limit`` messages, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def add_message(self, session_id: str, content: str, sender: str, role: Optional[str] = None) -> Message:
        message = Message(session_id=session_id, content=content, sender=sender, role=role)
        self.db.add(message)
        await self.db.commit()
        return message

    async def active_goal_titles(self, owner_id: str) -> List[str]:
        result = await self.db.execute(
            select(Goal.title)
            .where(Goal.user_id == owner_id, Goal.status == "active")
            .order_by(Goal.created_at.asc())
        )
        return list(result.scalars().all())

    async def post_turn(self, owner_id: str, session_id: str, text: str, api_key: str, coach: CoachService) -> ChatTurn:
        await self.get_or_create_session(session_id, owner_id)
        history = await self.recent_messages(session_id, settings.COACH_HISTORY_LIMIT)
        await self.add_message(session_id, text, "user")

        goals = await self.active_goal_titles(owner_id)
        reply = await coach.reply(api_key, goals, history, text)

        try:
            saved = await self.add_message(session_id, reply, "assistant", role="coach")
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Error saving assistant message: %s", exc)
            return ChatTurn(reply=reply, message_id=None)
        return ChatTurn(reply=reply, message_id=saved.id)

    async def _owned_session(self, session_id: str, owner_id: str) -> Optional[ChatSession]:
        result = await self.db.execute(
            select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == owner_id)
        )
        return result.scalar_one_or_none()
