from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_profile
from app.core.database import get_db
from app.schemas.analytics import Analytics
from app.schemas.profile import ProfileRead
from app.services.analytics_service import AnalyticsService

router = APIRouter()

@router.get("/analytics", response_model=Analytics)
async def get_analytics(profile: ProfileRead = Depends(get_current_profile), db: AsyncSession = Depends(get_db)):
    return await AnalyticsService(db).for_owner(profile.id)
