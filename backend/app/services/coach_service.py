import httpx
import logging
from typing import List, Optional, Sequence
from app.core.config import settings
from app.core.errors import ExternalServiceError
from app.models.chat import Message
from app.schemas.chat import ChatMessage

logger = logging.getLogger(__name__)

# --- PROMPT ---
SYSTEM_PROMPT = """
You are an AI coach who helps people reach their personal goals.
The user's current active goals: {goals}

Be supportive and motivating. Give concrete, practical next actions,
keep answers short, and ask a clarifying question when the user's request is vague.
"""

NO_ACTIVE_GOALS = "No active goals"
EMPTY_REPLY_FALLBACK = "Sorry, something went wrong while generating a reply."


def build_system_prompt(goal_titles: Sequence[str]) -> str:
    return SYSTEM_PROMPT.format(goals=", ".join(goal_titles) if goal_titles else NO_ACTIVE_GOALS).strip()


def to_chat_turns(messages: Sequence[Message]) -> List[ChatMessage]:
    return [
        ChatMessage(role="user" if m.sender == "user" else "assistant", content=m.content)
        for m in messages
        if m.content.strip()
    ]


class CoachService:
    """Single request/response call to an OpenAI-compatible chat-completion API.

    The API key belongs to the client and is passed per call. No streaming and
    no retries: a failed call surfaces as ``ExternalServiceError``.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = settings.COACH_API_URL
        self.model = settings.COACH_MODEL
        self.timeout = httpx.Timeout(settings.COACH_TIMEOUT_SECONDS, connect=10.0)
        self._transport = transport

    def _get_headers(self, api_key: str):
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }

    def build_payload(self, goal_titles: Sequence[str], history: Sequence[Message], message: str) -> dict:
        turns = [ChatMessage(role="system", content=build_system_prompt(goal_titles))]
        turns += to_chat_turns(history)
        turns.append(ChatMessage(role="user", content=message))
        return {
            "model": self.model,
            "messages": [t.model_dump() for t in turns],
            "max_tokens": settings.COACH_MAX_TOKENS,
            "temperature": settings.COACH_TEMPERATURE,
        }

    async def reply(self, api_key: str, goal_titles: Sequence[str], history: Sequence[Message], message: str) -> str:
        payload = self.build_payload(goal_titles, history, message)
        logger.info("Calling coach model %s with %d prior turns", self.model, len(history))
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, headers=self._get_headers(api_key), json=payload)
        except httpx.HTTPError as exc:
            logger.error("Coach request failed: %s", exc)
            raise ExternalServiceError() from exc

        if resp.status_code != 200:
            logger.error("Coach API error: %s", resp.status_code)
            raise ExternalServiceError()

        try:
            content = resp.json().get("choices", [{}])[0].get("message", {}).get("content")
        except (ValueError, IndexError, AttributeError, TypeError) as exc:
            logger.error("Coach API returned an unreadable body: %s", exc)
            raise ExternalServiceError() from exc
        if content is not None and not isinstance(content, str):
            logger.error("Coach API returned non-text content: %r", type(content))
            raise ExternalServiceError()
        return content.strip() if content and content.strip() else EMPTY_REPLY_FALLBACK


coach_service = CoachService()
