"""Profile row access with storage outcomes translated for callers."""
from typing import Any, Dict
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.errors import RowNotFound, StorageError, UniqueViolation
from app.models.profile import Profile


class ProfileRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, profile_id: str) -> Profile:
        """Fetch a profile, raising ``RowNotFound`` when no row matches."""
        try:
            result = await self._session.execute(select(Profile).where(Profile.id == profile_id))
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        profile = result.scalar_one_or_none()
        if profile is None:
            raise RowNotFound(profile_id)
        return profile

    async def create(self, values: Dict[str, Any]) -> Profile:
        """Insert a profile, raising ``UniqueViolation`` if the id is taken."""
        profile = Profile(**values)
        self._session.add(profile)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise UniqueViolation(values.get("id")) from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StorageError(str(exc)) from exc
        return profile

    async def update(self, profile_id: str, values: Dict[str, Any]) -> Profile:
        profile = await self.get(profile_id)
        for key, value in values.items():
            setattr(profile, key, value)
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StorageError(str(exc)) from exc
        return profile
