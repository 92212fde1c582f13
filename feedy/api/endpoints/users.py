import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence import BaseDatabase
from ...schemas import UserCreate, UserProfilePublic
from ..deps import get_database, require_owner

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=UserProfilePublic, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    """Stores the business profile for the signed-in account. Only a salted password hash is kept."""
    if await db.get_user_profile(owner_id) is not None:
        raise HTTPException(status_code=409, detail="Profile already exists")
    profile = user_in.to_profile(owner_id)
    await db.create_user_profile(profile)
    logger.info("Created profile for %s", owner_id)
    return UserProfilePublic.model_validate(profile, from_attributes=True)


@router.get("/me", response_model=UserProfilePublic)
async def read_own_profile(
    owner_id: str = Depends(require_owner), db: BaseDatabase = Depends(get_database)
):
    profile = await db.get_user_profile(owner_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return UserProfilePublic.model_validate(profile, from_attributes=True)


@router.put("/me", response_model=UserProfilePublic)
async def update_own_profile(
    user_in: UserCreate,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    existing = await db.get_user_profile(owner_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    profile = user_in.to_profile(owner_id, existing=existing)
    await db.update_user_profile(profile)
    return UserProfilePublic.model_validate(profile, from_attributes=True)
