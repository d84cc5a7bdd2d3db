from fastapi import APIRouter, HTTPException

from ....models.conversation import UserContext
from ....models.user import UserProfile, UserProfileCreate
from ....services.community import community_presence
from ....services.profile import get_profile_store

router = APIRouter(tags=["users"])


@router.post("/users", response_model=UserProfile)
async def create_user(body: UserProfileCreate):
    return get_profile_store().create_profile(body)


@router.get("/users/{user_id}", response_model=UserProfile)
async def get_user(user_id: str):
    profile = get_profile_store().get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


@router.get("/users/{user_id}/context", response_model=UserContext)
async def get_user_context(user_id: str):
    """Aggregated personalization context, as the chat prompt would see it."""
    return get_profile_store().user_context(user_id)


@router.get("/community/presence")
async def get_community_presence():
    # Simulated numbers for display only
    return community_presence()
