from fastapi import APIRouter, Depends, Request
from typing import Optional
from fastapi.security import HTTPAuthorizationCredentials

from app.api.deps import bearer_scheme, get_auth_backend
from app.core.errors import AuthError, AuthErrorKind
from app.core.rate_limit import limiter
from app.schemas.auth import Credentials, PendingConfirmation, SessionResponse
from app.services.auth_backend import AuthBackend
from app.services.session_manager import IdentitySessionManager, MemorySessionStorage

router = APIRouter(prefix="/auth")


async def _manager_for(backend: AuthBackend, credentials: Optional[HTTPAuthorizationCredentials]) -> IdentitySessionManager:
    token = credentials.credentials if credentials else None
    manager = IdentitySessionManager(backend, MemorySessionStorage(token))
    await manager.initialize()
    return manager


@router.post("/sign-up", response_model=SessionResponse)
@limiter.limit("10/hour")
async def sign_up(req: Credentials, request: Request, backend: AuthBackend = Depends(get_auth_backend)):
    manager = await _manager_for(backend, None)
    result = await manager.sign_up(req.email, req.password)
    if isinstance(result, PendingConfirmation):
        return SessionResponse(needs_confirmation=True, identity=result.identity)
    return SessionResponse(session=result, identity=result.identity)


@router.post("/sign-in", response_model=SessionResponse)
@limiter.limit("10/minute")
async def sign_in(req: Credentials, request: Request, backend: AuthBackend = Depends(get_auth_backend)):
    manager = await _manager_for(backend, None)
    session = await manager.sign_in(req.email, req.password)
    return SessionResponse(session=session, identity=session.identity)


@router.post("/sign-out")
async def sign_out(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    backend: AuthBackend = Depends(get_auth_backend),
):
    manager = await _manager_for(backend, credentials)
    await manager.sign_out()
    return {"message": "Signed out"}


@router.get("/session", response_model=SessionResponse)
async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    backend: AuthBackend = Depends(get_auth_backend),
):
    manager = await _manager_for(backend, credentials)
    session = manager.get_current_session()
    if session is None:
        raise AuthError(AuthErrorKind.NOT_AUTHENTICATED)
    return SessionResponse(session=session, identity=session.identity)
