"""Group creation and membership management."""

import uuid

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.models.base import utcnow
from stackmentor.models.conversation import ConversationDB, ConversationType
from stackmentor.models.group import (
    CreateGroupRequest,
    Group,
    GroupDB,
    GroupMember,
    GroupMemberDB,
    GroupMemberType,
)
from stackmentor.models.user import UserDB
from stackmentor.services.errors import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)


class GroupService:
    """Manages groups, their members and the group conversation."""

    def __init__(self, db_session: AsyncSession):
        """Initialize group service.

        Args:
            db_session: Database session for persistence
        """
        self.db_session = db_session

    async def _get_group_db(self, group_id: uuid.UUID) -> GroupDB:
        group = await self.db_session.get(GroupDB, group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    async def _get_membership(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMemberDB | None:
        return await self.db_session.get(GroupMemberDB, (group_id, user_id))

    async def is_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return await self._get_membership(group_id, user_id) is not None

    async def _members(self, group_id: uuid.UUID) -> list[GroupMember]:
        query = (
            select(GroupMemberDB, UserDB)
            .join(UserDB, UserDB.user_id == GroupMemberDB.user_id)
            .where(GroupMemberDB.group_id == group_id)
            .order_by(GroupMemberDB.joined_at, UserDB.last_name)
        )
        result = await self.db_session.execute(query)
        return [
            GroupMember(
                user_id=member.user_id,
                name=user.full_name,
                role=member.role,
                joined_at=member.joined_at,
            )
            for member, user in result.all()
        ]

    async def _to_group(self, group: GroupDB) -> Group:
        return Group(
            group_id=group.group_id,
            group_name=group.group_name,
            description=group.description,
            created_by=group.created_by,
            created_at=group.created_at,
            members=await self._members(group.group_id),
        )

    async def create_group(self, request: CreateGroupRequest, creator: UserDB) -> Group:
        """Create a group with the creator as its admin.

        Args:
            request: Group name, description and optional initial members
            creator: User creating the group

        Returns:
            The new group with its members

        Raises:
            NotFoundError: If an initial member id does not exist
        """
        now = utcnow()
        group = GroupDB(
            group_id=uuid.uuid4(),
            group_name=request.group_name,
            description=request.description,
            created_by=creator.user_id,
            created_at=now,
        )
        self.db_session.add(group)
        # Parent row first; the models carry no relationships to order the flush
        await self.db_session.flush()
        self.db_session.add(
            GroupMemberDB(
                group_id=group.group_id,
                user_id=creator.user_id,
                role=GroupMemberType.ADMIN.value,
                joined_at=now,
            )
        )

        initial_ids = [uid for uid in dict.fromkeys(request.member_ids) if uid != creator.user_id]
        if initial_ids:
            result = await self.db_session.execute(
                select(UserDB.user_id).where(UserDB.user_id.in_(initial_ids))
            )
            found = set(result.scalars().all())
            missing = [str(uid) for uid in initial_ids if uid not in found]
            if missing:
                raise NotFoundError("Users not found", details={"user_ids": missing})
            for user_id in initial_ids:
                self.db_session.add(
                    GroupMemberDB(
                        group_id=group.group_id,
                        user_id=user_id,
                        role=GroupMemberType.MEMBER.value,
                        joined_at=utcnow(),
                    )
                )

        self.db_session.add(
            ConversationDB(
                conversation_id=uuid.uuid4(),
                conversation_type=ConversationType.GROUP.value,
                group_id=group.group_id,
                created_at=now,
            )
        )
        await self.db_session.commit()

        logger.info(
            "group_created",
            group_id=str(group.group_id),
            created_by=str(creator.user_id),
            initial_members=len(initial_ids),
        )
        return await self._to_group(group)

    async def add_user_to_group(
        self,
        group_id: uuid.UUID,
        user_id: uuid.UUID,
        role: GroupMemberType = GroupMemberType.MEMBER,
    ) -> Group:
        """Add a user to a group.

        Raises:
            NotFoundError: If the group or user does not exist
            ConflictError: If the user is already a member
        """
        group = await self._get_group_db(group_id)
        if await self.db_session.get(UserDB, user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        if await self.is_member(group_id, user_id):
            raise ConflictError("User is already a member of this group")

        self.db_session.add(
            GroupMemberDB(
                group_id=group_id,
                user_id=user_id,
                role=GroupMemberType(role).value,
                joined_at=utcnow(),
            )
        )
        await self.db_session.commit()

        logger.info("group_member_added", group_id=str(group_id), user_id=str(user_id), role=str(role))
        return await self._to_group(group)

    async def remove_user_from_group(self, group_id: uuid.UUID, user_id: uuid.UUID) -> Group:
        """Remove a user from a group.

        Raises:
            NotFoundError: If the group does not exist or the user is not a member
            ConflictError: If the user is the last admin and others remain
        """
        group = await self._get_group_db(group_id)
        membership = await self._get_membership(group_id, user_id)
        if membership is None:
            raise NotFoundError("User is not a member of this group")

        if membership.role == GroupMemberType.ADMIN.value:
            admins = await self._count(group_id, GroupMemberType.ADMIN)
            total = await self._count(group_id)
            if admins == 1 and total > 1:
                raise ConflictError("Cannot remove the last admin of a group with other members")

        await self.db_session.execute(
            delete(GroupMemberDB).where(
                GroupMemberDB.group_id == group_id,
                GroupMemberDB.user_id == user_id,
            )
        )
        await self.db_session.commit()

        logger.info("group_member_removed", group_id=str(group_id), user_id=str(user_id))
        return await self._to_group(group)

    async def _count(self, group_id: uuid.UUID, role: GroupMemberType | None = None) -> int:
        query = select(func.count()).select_from(GroupMemberDB).where(GroupMemberDB.group_id == group_id)
        if role is not None:
            query = query.where(GroupMemberDB.role == role.value)
        result = await self.db_session.execute(query)
        return result.scalar_one()

    async def get_group_with_members(self, group_id: uuid.UUID) -> Group:
        """Load a group and its members ordered by join time.

        Raises:
            NotFoundError: If the group does not exist
        """
        return await self._to_group(await self._get_group_db(group_id))

    async def list_user_groups(self, user_id: uuid.UUID) -> list[Group]:
        """Groups the user belongs to, newest first."""
        query = (
            select(GroupDB)
            .join(GroupMemberDB, GroupMemberDB.group_id == GroupDB.group_id)
            .where(GroupMemberDB.user_id == user_id)
            .order_by(GroupDB.created_at.desc())
        )
        result = await self.db_session.execute(query)
        return [await self._to_group(group) for group in result.scalars().all()]

    async def require_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Raise PermissionError unless the user belongs to the group."""
        await self._get_group_db(group_id)
        if not await self.is_member(group_id, user_id):
            raise PermissionError("You are not a member of this group")

    async def require_admin(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Raise PermissionError unless the user is an admin of the group."""
        await self._get_group_db(group_id)
        membership = await self._get_membership(group_id, user_id)
        if membership is None or membership.role != GroupMemberType.ADMIN.value:
            raise PermissionError("Only group admins can manage members")
