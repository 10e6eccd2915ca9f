import asyncio
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ReconcileError, RowNotFound, StorageError, UniqueViolation
from app.repositories.profile_repository import ProfileRepository
from app.schemas.auth import Identity
from app.schemas.profile import ProfileRead, ProfileUpdate
from app.services.session_manager import SessionEvent, SessionEventKind

logger = logging.getLogger(__name__)


def default_profile_values(identity: Identity) -> dict:
    local_part = identity.email.split("@")[0] if identity.email else ""
    return {
        "id": identity.id,
        "email": identity.email,
        "name": local_part or None,
        "onboarding_completed": False,
    }


class ProfileReconciler:
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory
        self._profile: Optional[ProfileRead] = None
        self._in_flight: Dict[str, asyncio.Task] = {}

    @property
    def current_profile(self) -> Optional[ProfileRead]:
        return self._profile

    def is_reconciling(self, identity_id: str) -> bool:
        return identity_id in self._in_flight

    async def handle_session_event(self, event: SessionEvent) -> None:
        """Reactive trigger wired to the session manager's subscription."""
        if event.kind == SessionEventKind.TERMINATED:
            self._profile = None
            return

        identity = event.identity
        if identity is None:
            return
        if self.is_reconciling(identity.id):
            logger.info("Reconciliation for %s already in flight, ignoring trigger", identity.id)
            return
        try:
            await self.get_or_create_profile(identity)
        except ReconcileError as exc:
            # Retried on the next identity observation.
            logger.error("Profile unavailable for %s: %s", identity.id, exc.reason)

    async def get_or_create_profile(self, identity: Optional[Identity]) -> Optional[ProfileRead]:
        if identity is None:
            self._profile = None
            return None

        task = self._in_flight.get(identity.id)
        if task is None:
            # Runs to completion even if every caller is cancelled.
            task = asyncio.ensure_future(self._run(identity))
            self._in_flight[identity.id] = task
            task.add_done_callback(lambda done, key=identity.id: self._finish(key, done))
        return await asyncio.shield(task)

    async def update_profile(self, patch: ProfileUpdate) -> ProfileRead:
        if self._profile is None:
            raise ReconcileError(ReconcileError.NO_PROFILE, "No user profile")

        values = patch.model_dump(exclude_unset=True)
        logger.info("Updating profile %s with %s", self._profile.id, sorted(values))
        async with self._session_factory() as db:
            try:
                row = await ProfileRepository(db).update(self._profile.id, values)
            except RowNotFound as exc:
                raise ReconcileError(ReconcileError.NO_PROFILE, "No user profile") from exc
            except StorageError as exc:
                logger.error("Error updating profile %s: %s", self._profile.id, exc)
                raise ReconcileError(ReconcileError.UPDATE_FAILED, "Profile update failed") from exc
            self._profile = ProfileRead.model_validate(row)
        return self._profile

    async def _reconcile(self, identity: Identity) -> ProfileRead:
        logger.info("Fetching profile for identity %s", identity.id)
        async with self._session_factory() as db:
            repo = ProfileRepository(db)
            try:
                return ProfileRead.model_validate(await repo.get(identity.id))
            except RowNotFound:
                pass
            except StorageError as exc:
                logger.error("Profile fetch failed for %s: %s", identity.id, exc)
                raise ReconcileError(ReconcileError.FETCH_FAILED) from exc

            logger.info("Creating new profile for identity %s", identity.id)
            try:
                return ProfileRead.model_validate(await repo.create(default_profile_values(identity)))
            except UniqueViolation:
                logger.warning("Profile %s created concurrently, re-reading", identity.id)
            except StorageError as exc:
                logger.error("Error creating profile for %s: %s", identity.id, exc)
                raise ReconcileError(ReconcileError.CREATE_FAILED) from exc

            try:
                return ProfileRead.model_validate(await repo.get(identity.id))
            except RowNotFound as exc:
                # The violation was not about this id after all.
                raise ReconcileError(ReconcileError.CREATE_FAILED) from exc
            except StorageError as exc:
                raise ReconcileError(ReconcileError.FETCH_FAILED) from exc

    async def _run(self, identity: Identity) -> ProfileRead:
        profile = await self._reconcile(identity)
        self._profile = profile
        return profile

    def _finish(self, identity_id: str, task: asyncio.Task) -> None:
        self._in_flight.pop(identity_id, None)
        if not task.cancelled():
            # Waiters re-raise the outcome themselves.
            task.exception()
