import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Union

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AuthError, AuthErrorKind, RowNotFound
from app.core.security import generate_session_token, hash_password, verify_password
from app.models.auth import AuthIdentity, AuthSession
from app.schemas.auth import Identity, PendingConfirmation, Session

logger = logging.getLogger(__name__)

SignUpResult = Union[Session, PendingConfirmation]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthBackend(Protocol):
    async def sign_in_with_password(self, email: str, password: str) -> Session:
        ...

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        ...

    async def sign_out(self, access_token: str) -> None:
        ...

    async def get_session(self, access_token: str) -> Optional[Session]:
        ...

    async def get_identity_by_email(self, email: str) -> Optional[Identity]:
        ...

    async def confirm_email(self, identity_id: str) -> Identity:
        ...


class DatabaseAuthBackend:
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        email = normalize_email(email)
        async with self._session_factory() as db:
            identity = await self._identity_by_email(db, email)
            if identity is None:
                raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

            now = datetime.utcnow()
            if identity.locked_until and identity.locked_until > now:
                raise AuthError(AuthErrorKind.RATE_LIMITED)

            if not verify_password(password, identity.hashed_password):
                identity.failed_login_attempts = (identity.failed_login_attempts or 0) + 1
                if identity.failed_login_attempts >= settings.AUTH_MAX_FAILED_ATTEMPTS:
                    identity.locked_until = now + timedelta(minutes=settings.AUTH_LOCKOUT_MINUTES)
                    identity.failed_login_attempts = 0
                    logger.warning("Sign-in locked for %s after repeated failures", identity.id)
                await db.commit()
                raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

            # An unconfirmed identity looks exactly like a bad password from here.
            if identity.email_confirmed_at is None:
                raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

            identity.failed_login_attempts = 0
            identity.locked_until = None
            session = await self._issue_session(db, identity)
            await db.commit()
            return session

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        try:
            email = validate_email(normalize_email(email), check_deliverability=False).normalized
        except EmailNotValidError as exc:
            raise AuthError(AuthErrorKind.INVALID_EMAIL) from exc

        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise AuthError(
                AuthErrorKind.WEAK_PASSWORD,
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
            )

        async with self._session_factory() as db:
            if await self._identity_by_email(db, email) is not None:
                raise AuthError(AuthErrorKind.EMAIL_ALREADY_REGISTERED)

            identity = AuthIdentity(
                email=email,
                hashed_password=hash_password(password),
                email_confirmed_at=datetime.utcnow() if settings.AUTH_AUTO_CONFIRM else None,
            )
            db.add(identity)
            try:
                await db.flush()
            except IntegrityError as exc:
                await db.rollback()
                raise AuthError(AuthErrorKind.EMAIL_ALREADY_REGISTERED) from exc

            if identity.email_confirmed_at is None:
                await db.commit()
                logger.info("Identity %s created, awaiting email confirmation", identity.id)
                return PendingConfirmation(identity=Identity.model_validate(identity))

            session = await self._issue_session(db, identity)
            await db.commit()
            return session

    async def sign_out(self, access_token: str) -> None:
        async with self._session_factory() as db:
            row = await db.get(AuthSession, access_token)
            if row is not None and row.revoked_at is None:
                row.revoked_at = datetime.utcnow()
                await db.commit()

    async def get_session(self, access_token: str) -> Optional[Session]:
        async with self._session_factory() as db:
            row = await db.get(AuthSession, access_token)
            if row is None or row.revoked_at is not None or row.expires_at <= datetime.utcnow():
                return None
            identity = await db.get(AuthIdentity, row.identity_id)
            if identity is None:
                return None
            return Session(
                access_token=row.token,
                expires_at=row.expires_at,
                identity=Identity.model_validate(identity),
            )

    async def get_identity_by_email(self, email: str) -> Optional[Identity]:
        async with self._session_factory() as db:
            identity = await self._identity_by_email(db, normalize_email(email))
            return Identity.model_validate(identity) if identity else None

    async def confirm_email(self, identity_id: str) -> Identity:
        async with self._session_factory() as db:
            identity = await db.get(AuthIdentity, identity_id)
            if identity is None:
                raise RowNotFound(identity_id)
            if identity.email_confirmed_at is None:
                identity.email_confirmed_at = datetime.utcnow()
                await db.commit()
            return Identity.model_validate(identity)

    async def _identity_by_email(self, db: AsyncSession, email: str) -> Optional[AuthIdentity]:
        try:
            result = await db.execute(select(AuthIdentity).where(AuthIdentity.email == email))
        except SQLAlchemyError as exc:
            logger.error("Identity lookup failed: %s", exc)
            raise AuthError(AuthErrorKind.UNKNOWN) from exc
        return result.scalar_one_or_none()

    async def _issue_session(self, db: AsyncSession, identity: AuthIdentity) -> Session:
        row = AuthSession(
            token=generate_session_token(),
            identity_id=identity.id,
            expires_at=datetime.utcnow() + timedelta(hours=settings.AUTH_SESSION_TTL_HOURS),
        )
        db.add(row)
        await db.flush()
        return Session(
            access_token=row.token,
            expires_at=row.expires_at,
            identity=Identity.model_validate(identity),
        )
