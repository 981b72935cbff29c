"""User profile and search endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.api.middleware.auth import get_current_user
from stackmentor.models.user import UserDB, UserProfile
from stackmentor.services.database import get_db_session
from stackmentor.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserProfile)
async def get_me(current_user: UserDB = Depends(get_current_user)) -> UserProfile:
    """Profile of the authenticated user."""
    return UserProfile.from_db(current_user)


@router.get("/search", response_model=list[UserProfile])
async def search_users(
    q: str | None = Query(None, max_length=100, description="Whole or partial name"),
    role: str | None = Query(None, description="mentor or mentee"),
    experience: str | None = Query(None, description='Years of experience, "5+" or "2-4"'),
    industries: list[str] | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> list[UserProfile]:
    """Search verified mentors and mentees."""
    return await UserService(db).search_users(
        search_text=q,
        role=role,
        experience_range=experience,
        industries=industries,
        limit=limit,
    )


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> UserProfile:
    """Profile of any user."""
    return await UserService(db).get_user(user_id)
