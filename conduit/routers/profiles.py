from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import AuthContext, optional_auth, required_auth, viewer_id
from conduit.schemas import ProfileResponse
from conduit.services import profile_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    auth: AuthContext | None = Depends(optional_auth),
    db: AsyncSession = Depends(get_db),
):
    return ProfileResponse(profile=await profile_service.get_profile(db, username, viewer_id(auth)))


@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow_user(
    username: str,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return ProfileResponse(profile=await profile_service.follow(db, username, auth.user_id))


@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow_user(
    username: str,
    auth: AuthContext = Depends(required_auth),
    db: AsyncSession = Depends(get_db),
):
    return ProfileResponse(profile=await profile_service.unfollow(db, username, auth.user_id))
