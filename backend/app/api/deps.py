from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.database import AsyncSessionLocal
from app.core.errors import AuthError, AuthErrorKind
from app.schemas.auth import Session
from app.schemas.profile import ProfileRead
from app.services.auth_backend import AuthBackend, DatabaseAuthBackend
from app.services.coach_service import CoachService, coach_service
from app.services.profile_reconciler import ProfileReconciler

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_factory():
    return AsyncSessionLocal


def get_auth_backend(session_factory=Depends(get_session_factory)) -> AuthBackend:
    return DatabaseAuthBackend(session_factory)


def get_coach_service() -> CoachService:
    return coach_service


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    backend: AuthBackend = Depends(get_auth_backend),
) -> Session:
    if credentials is None:
        raise AuthError(AuthErrorKind.NOT_AUTHENTICATED)
    session = await backend.get_session(credentials.credentials)
    if session is None:
        raise AuthError(AuthErrorKind.NOT_AUTHENTICATED)
    return session


async def get_profile_reconciler(
    session: Session = Depends(get_current_session),
    session_factory=Depends(get_session_factory),
) -> ProfileReconciler:
    # First authenticated request of a new identity provisions its profile here.
    reconciler = ProfileReconciler(session_factory)
    await reconciler.get_or_create_profile(session.identity)
    return reconciler


async def get_current_profile(reconciler: ProfileReconciler = Depends(get_profile_reconciler)) -> ProfileRead:
    return reconciler.current_profile
