import asyncio
from collections import deque
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Deque, List, Optional, Protocol, Union

from app.core.errors import AuthError, AuthErrorKind
from app.schemas.auth import Identity, PendingConfirmation, Session
from app.services.auth_backend import AuthBackend, SignUpResult, normalize_email

logger = logging.getLogger(__name__)


class SessionEventKind(str, Enum):
    RESTORED = "restored"
    ESTABLISHED = "established"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    session: Optional[Session]
    live: bool

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.identity if self.session else None


SessionHandler = Callable[[SessionEvent], Union[None, Awaitable[None]]]


class SessionStorage(Protocol):
    """Client-local persistence for the one opaque session token."""

    async def load(self) -> Optional[str]:
        ...

    async def save(self, token: str) -> None:
        ...

    async def clear(self) -> None:
        ...


class MemorySessionStorage:
    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    async def load(self) -> Optional[str]:
        return self._token

    async def save(self, token: str) -> None:
        self._token = token

    async def clear(self) -> None:
        self._token = None


class IdentitySessionManager:
    """Current session of one client context and the ordered stream of its transitions."""

    def __init__(self, backend: AuthBackend, storage: Optional[SessionStorage] = None) -> None:
        self._backend = backend
        self._storage = storage or MemorySessionStorage()
        self._session: Optional[Session] = None
        self._handlers: List[SessionHandler] = []
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._emit_lock = asyncio.Lock()
        self._pending: Deque[SessionEvent] = deque()
        self._dispatching = False
        # Every operation takes a ticket when it starts; a result is applied
        # only if no later-started operation has been applied already.
        self._next_ticket = 0
        self._applied_ticket = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get_current_session(self) -> Optional[Session]:
        return self._session

    def on_session_change(self, handler: SessionHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def initialize(self) -> Optional[Session]:
        async with self._init_lock:
            if self._initialized:
                return self._session

            ticket = self._take_ticket()
            token = await self._storage.load()
            session = None
            if token:
                try:
                    session = await self._backend.get_session(token)
                except AuthError as exc:
                    logger.error("Session restore failed: %s", exc.message)
                if session is None:
                    await self._storage.clear()

            if session is not None and self._is_current(ticket):
                logger.info("Restored session for %s", session.identity.email)
                await self._apply(ticket, session, SessionEventKind.RESTORED, live=False)

            self._initialized = True
            return self._session

    async def refresh(self) -> Optional[Session]:
        """Re-validate the current session against the backend."""
        current = self._session
        if current is None:
            return None
        ticket = self._take_ticket()
        session = await self._backend.get_session(current.access_token)
        if session is None and self._is_current(ticket) and self._session is current:
            logger.info("Session for %s is no longer valid", current.identity.email)
            await self._apply(ticket, None, SessionEventKind.TERMINATED, live=self._initialized)
        return self._session

    async def sign_in(self, email: str, password: str) -> Session:
        email = normalize_email(email)
        ticket = self._take_ticket()
        logger.info("Attempting sign in for %s", email)
        try:
            session = await self._backend.sign_in_with_password(email, password)
        except AuthError as exc:
            if exc.kind == AuthErrorKind.INVALID_CREDENTIALS:
                await self._raise_if_unconfirmed(email, exc)
            logger.info("Sign in failed for %s: %s", email, exc.kind.value)
            raise

        await self._establish(ticket, session)
        return session

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        email = normalize_email(email)
        ticket = self._take_ticket()
        logger.info("Attempting sign up for %s", email)
        result = await self._backend.sign_up(email, password)
        if isinstance(result, PendingConfirmation):
            logger.info("Sign up for %s pending email confirmation", email)
            return result

        await self._establish(ticket, result)
        return result

    async def sign_out(self) -> None:
        current = self._session
        ticket = self._take_ticket()
        if current is None:
            return

        await self._backend.sign_out(current.access_token)
        if not self._is_current(ticket):
            return
        if await self._apply(ticket, None, SessionEventKind.TERMINATED, live=self._initialized):
            logger.info("Signed out %s", current.identity.email)

    async def _raise_if_unconfirmed(self, email: str, original: AuthError) -> None:
        try:
            identity = await self._backend.get_identity_by_email(email)
        except AuthError:
            return
        if identity is not None and not identity.is_confirmed:
            raise AuthError(AuthErrorKind.EMAIL_NOT_CONFIRMED) from original

    async def _establish(self, ticket: int, session: Session) -> None:
        if not await self._apply(ticket, session, SessionEventKind.ESTABLISHED, live=self._initialized):
            logger.info("Discarding stale session for %s", session.identity.email)
            await self._backend.sign_out(session.access_token)

    def _take_ticket(self) -> int:
        self._next_ticket += 1
        return self._next_ticket

    def _is_current(self, ticket: int) -> bool:
        return ticket > self._applied_ticket

    async def _apply(self, ticket: int, session: Optional[Session], kind: SessionEventKind, live: bool) -> bool:
        async with self._emit_lock:
            if not self._is_current(ticket):
                return False
            self._applied_ticket = ticket
            self._session = session
            if session is None:
                await self._storage.clear()
            else:
                await self._storage.save(session.access_token)
            self._pending.append(SessionEvent(kind=kind, session=session, live=live))
        await self._dispatch()
        return True

    async def _dispatch(self) -> None:
        if self._dispatching:
            # Re-entered from a handler; the running loop delivers the event next.
            return
        self._dispatching = True
        try:
            while self._pending:
                event = self._pending.popleft()
                for handler in list(self._handlers):
                    result = handler(event)
                    if inspect.isawaitable(result):
                        await result
        finally:
            self._dispatching = False
