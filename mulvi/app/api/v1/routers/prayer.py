from fastapi import APIRouter, HTTPException

from ....models.prayer import PrayerRecordCreate, PrayerRecordResponse, PrayerStats
from ....services.profile import get_profile_store

router = APIRouter(prefix="/prayer", tags=["prayer"])


@router.post("/records", response_model=PrayerRecordResponse)
async def create_prayer_record(body: PrayerRecordCreate):
    row = get_profile_store().record_prayer(
        body.user_id, body.prayer_name, completed_at=body.completed_at, notes=body.notes
    )
    return PrayerRecordResponse(
        id=row.id,
        user_id=row.user_id,
        prayer_name=row.prayer_name,
        completed_at=row.completed_at,
        notes=row.notes,
    )


@router.get("/stats/{user_id}", response_model=PrayerStats)
async def get_prayer_stats(user_id: str):
    stats = get_profile_store().prayer_stats(user_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="No prayers recorded yet")
    return stats
