from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user, require_user
from conduit.schemas import CurrentUser
from conduit.services import user_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("/{username}")
async def get_profile(
    username: str,
    viewer: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.get_profile(db, username, viewer)}


@router.post("/{username}/follow")
async def follow_user(
    username: str,
    user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.follow(db, user, username)}


@router.delete("/{username}/follow")
async def unfollow_user(
    username: str,
    user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.unfollow(db, user, username)}
