from fastapi import APIRouter, Depends

from app.api.deps import get_current_profile, get_profile_reconciler
from app.schemas.profile import ProfileRead, ProfileUpdate
from app.services.profile_reconciler import ProfileReconciler

router = APIRouter()

@router.get("/profile", response_model=ProfileRead)
async def get_profile(profile: ProfileRead = Depends(get_current_profile)):
    return profile

@router.patch("/profile", response_model=ProfileRead)
async def update_profile(patch: ProfileUpdate, reconciler: ProfileReconciler = Depends(get_profile_reconciler)):
    return await reconciler.update_profile(patch)
