from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.auth_backend import AuthBackend
from app.services.profile_reconciler import ProfileReconciler
from app.services.session_manager import IdentitySessionManager, SessionStorage


class ClientContext:
    def __init__(
        self,
        backend: AuthBackend,
        session_factory: Callable[[], AsyncSession],
        storage: Optional[SessionStorage] = None,
    ) -> None:
        self.sessions = IdentitySessionManager(backend, storage)
        self.profiles = ProfileReconciler(session_factory)
        self._unsubscribe = self.sessions.on_session_change(self.profiles.handle_session_event)

    async def start(self) -> None:
        await self.sessions.initialize()

    def close(self) -> None:
        self._unsubscribe()
