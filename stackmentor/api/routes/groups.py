"""Group management endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.api.middleware.auth import get_current_user
from stackmentor.models.conversation import Conversation
from stackmentor.models.group import AddGroupMemberRequest, CreateGroupRequest, Group
from stackmentor.models.user import UserDB
from stackmentor.services.database import get_db_session
from stackmentor.services.group_service import GroupService
from stackmentor.services.message_service import MessageService

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.post("", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_group(
    request: CreateGroupRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> Group:
    """Create a group; the caller becomes its admin."""
    return await GroupService(db).create_group(request, current_user)


@router.get("", response_model=list[Group])
async def list_my_groups(
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> list[Group]:
    """Groups the caller belongs to."""
    return await GroupService(db).list_user_groups(current_user.user_id)


@router.get("/{group_id}", response_model=Group)
async def get_group(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> Group:
    """Group details with members; members only."""
    service = GroupService(db)
    await service.require_member(group_id, current_user.user_id)
    return await service.get_group_with_members(group_id)


@router.post("/{group_id}/members", response_model=Group)
async def add_member(
    group_id: uuid.UUID,
    request: AddGroupMemberRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> Group:
    """Add a user to the group; admins only."""
    service = GroupService(db)
    await service.require_admin(group_id, current_user.user_id)
    return await service.add_user_to_group(group_id, request.user_id, request.role)


@router.delete("/{group_id}/members/{user_id}", response_model=Group)
async def remove_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> Group:
    """Remove a member; admins remove anyone, members may leave."""
    service = GroupService(db)
    if user_id != current_user.user_id:
        await service.require_admin(group_id, current_user.user_id)
    return await service.remove_user_from_group(group_id, user_id)


@router.get("/{group_id}/conversation", response_model=Conversation)
async def get_group_conversation(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: UserDB = Depends(get_current_user),
) -> Conversation:
    """The group's shared conversation; members only."""
    await GroupService(db).require_member(group_id, current_user.user_id)
    return await MessageService(db).get_group_conversation(group_id, current_user.user_id)
